"""Category rules for captured text.

Rules are evaluated in table order and the first match wins, so more
specific tools (``kubectl``) sit above generic shell commands. Every pattern
is compiled with ``re.MULTILINE``: ``^`` matches at the start of any line of
the snippet.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Pattern, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryRule:
    label: str
    patterns: Tuple[Pattern[str], ...]

    @classmethod
    def build(cls, label: str, *patterns: str) -> "CategoryRule":
        return cls(label, tuple(re.compile(p, re.MULTILINE) for p in patterns))

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule.build("Docker", r"^(docker|docker-compose)\s"),
    CategoryRule.build("Kubernetes", r"^kubectl\s", r"^helm\s"),
    CategoryRule.build("IaC", r"^terraform\s", r"^ansible(-playbook)?\s"),
    CategoryRule.build("Cloud CLI", r"^aws\s", r"^gcloud\s", r"^az\s"),
    CategoryRule.build("Version Control", r"^git\s", r"^gh\s", r"^svn\s"),
    CategoryRule.build(
        "Package Management",
        r"^npm\s", r"^npx\s", r"^yarn\s", r"^pnpm\s", r"^(pip|pip3)\s",
        r"^poetry\s", r"^cargo\s", r"^go\s(mod|get|build|run)\b", r"^brew\s",
        r"^(apt|apt-get)\s", r"^(yum|dnf)\s",
    ),
    CategoryRule.build(
        "Runtime / Build",
        r"^node\s", r"^(python|python3)\s", r"^java\s", r"^mvn\s",
        r"^gradle\s", r"^dotnet\s", r"^rustc\s",
    ),
    CategoryRule.build(
        "Shell / OS",
        r"^(cd|ls|pwd|cp|mv|rm|cat|less|grep|find|chmod|chown)\b",
        r"^zsh\s",
        r"^(Get-|Set-|New-|Remove-)\w+",
    ),
    CategoryRule.build(
        "Networking",
        r"^curl\s", r"^wget\s", r"^http\s", r"^ping\s", r"^(netstat|ss)\s",
        r"^lsof\s",
    ),
    CategoryRule.build(
        "Database",
        r"^psql\s", r"^mysql\s", r"^redis-cli\s", r"^mongo\s", r"^sqlite3\s",
    ),
    CategoryRule.build(
        "CI / Build",
        r"^make\s", r"^cmake\s", r"^bazel\s", r"^\s*(uses:|runs-on:|steps:)",
    ),
    # A bare link and nothing else.
    CategoryRule.build("URL", r"\A\s*https?://\S+\s*\Z"),
)


class SimilarityLookup(Protocol):
    def find_similar_category(self, content: str) -> Optional[str]:
        ...


def classify(
    text: str, rules: Sequence[CategoryRule] = CATEGORY_RULES
) -> Optional[str]:
    for rule in rules:
        if rule.matches(text):
            return rule.label
    return None


def guess_category(
    text: str,
    store: Optional[SimilarityLookup] = None,
    rules: Sequence[CategoryRule] = CATEGORY_RULES,
) -> Optional[str]:
    """Rule-based category, else the category of a similar stored item."""
    category = classify(text, rules)
    if category is None and store is not None:
        category = store.find_similar_category(text)
        if category is not None:
            logger.debug("Reused category %r from a similar item", category)
    return category
