import pytest

from ortu.services.classifier import CATEGORY_RULES, CategoryRule, classify, guess_category


@pytest.mark.parametrize(
    "text, expected",
    [
        ("git commit -m fix", "Version Control"),
        ("docker ps -a", "Docker"),
        ("docker-compose up -d", "Docker"),
        ("curl https://api.example.com", "Networking"),
        ("kubectl get pods", "Kubernetes"),
        ("helm install redis bitnami/redis", "Kubernetes"),
        ("terraform plan", "IaC"),
        ("aws s3 ls", "Cloud CLI"),
        ("pip install requests", "Package Management"),
        ("go mod tidy", "Package Management"),
        ("python3 manage.py runserver", "Runtime / Build"),
        ("ls -la", "Shell / OS"),
        ("Get-ChildItem C:\\", "Shell / OS"),
        ("psql -U postgres", "Database"),
        ("make test", "CI / Build"),
        ("  runs-on: ubuntu-latest", "CI / Build"),
        ("https://example.com/docs?page=2", "URL"),
        ("hello world", None),
        ("", None),
    ],
)
def test_classify_examples(text, expected):
    assert classify(text) == expected


def test_rules_match_at_any_line_start():
    snippet = "# deploy\nkubectl apply -f deploy.yaml\n"
    assert classify(snippet) == "Kubernetes"


def test_rule_order_decides_between_families():
    # both the Kubernetes and the Docker rule match; Docker is listed first
    snippet = "kubectl get pods\ndocker ps"
    assert classify(snippet) == "Docker"


def test_word_boundary_for_shell_commands():
    assert classify("catalog entries") is None
    assert classify("cat /etc/hosts") == "Shell / OS"


def test_url_rule_needs_a_bare_link():
    assert classify("see https://example.com for details") is None


def test_classify_is_deterministic():
    text = "npm run build"
    assert {classify(text) for _ in range(5)} == {"Package Management"}


def test_custom_rule_table():
    rules = (CategoryRule.build("Notes", r"^TODO\b"),) + CATEGORY_RULES
    assert classify("TODO buy milk", rules) == "Notes"
    assert classify("TODO buy milk") is None


class _Lookup:
    def __init__(self, answer):
        self.answer = answer
        self.calls = []

    def find_similar_category(self, content):
        self.calls.append(content)
        return self.answer


def test_guess_category_prefers_rules():
    lookup = _Lookup("Other")
    assert guess_category("git status", lookup) == "Version Control"
    assert lookup.calls == []


def test_guess_category_falls_back_to_similarity():
    lookup = _Lookup("Tools")
    assert guess_category("mytool deploy", lookup) == "Tools"
    assert lookup.calls == ["mytool deploy"]


def test_guess_category_without_store():
    assert guess_category("mytool deploy") is None
