from ortu.models.clipboarditem import BackupData, ClipboardItem, Group

__all__ = [
    'BackupData',
    'ClipboardItem',
    'Group',
]
