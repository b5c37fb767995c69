import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from publication_core import (
    author_matches_query,
    extract_authors,
    normalize_author_name,
    parse_csv,
    split_authors,
)

NORMALIZE_CASES = [
    {"name": "trailing period", "raw": "Smith, J.", "expected": "Smith, J"},
    {"name": "trailing space then period", "raw": "Doe, A. ", "expected": "Doe, A"},
    {"name": "surrounding whitespace", "raw": "  Yamada  ", "expected": "Yamada"},
    {"name": "only one period removed", "raw": "Jr..", "expected": "Jr."},
    {"name": "inner period kept", "raw": "J. Smith", "expected": "J. Smith"},
    {"name": "empty", "raw": "   ", "expected": ""},
]

QUERY_CASES = [
    {"name": "substring", "author": "Yamada Taro", "query": "yam", "expected": True},
    {"name": "case folded and trimmed", "author": "Yamada Taro", "query": "  TARO ", "expected": True},
    {"name": "empty query", "author": "Yamada Taro", "query": "", "expected": True},
    {"name": "none query", "author": "Yamada Taro", "query": None, "expected": True},
    {"name": "no match", "author": "Yamada Taro", "query": "sato", "expected": False},
]


def _run_normalize_case(case: dict) -> dict:
    actual = normalize_author_name(case["raw"])
    passed = actual == case["expected"]
    return {"name": case["name"], "passed": passed, "reason": "" if passed else f"actual={actual!r}"}


def _run_query_case(case: dict) -> dict:
    actual = author_matches_query(case["author"], case["query"])
    passed = actual == case["expected"]
    return {"name": case["name"], "passed": passed, "reason": "" if passed else f"actual={actual}"}


def test_normalize_cases():
    failures = [r for r in (_run_normalize_case(c) for c in NORMALIZE_CASES) if not r["passed"]]
    assert not failures, failures


def test_query_cases():
    failures = [r for r in (_run_query_case(c) for c in QUERY_CASES) if not r["passed"]]
    assert not failures, failures


def test_multi_author_field_splits_on_every_comma():
    assert split_authors("Smith, J., Doe, A.") == ["Smith", "J", "Doe", "A"]


def test_extract_sorted_distinct_nonempty():
    records = parse_csv(
        "Publication Year,Authors\n"
        '2020,"Yamada, Sato."\n'
        '2021,"Sato, , Abe "\n'
        "2022,\n"
    )
    assert extract_authors(records) == ["Abe", "Sato", "Yamada"]


def test_extract_is_case_sensitive_and_codepoint_sorted():
    records = [{"Authors": "smith, Smith, Doe"}]
    assert extract_authors(records) == ["Doe", "Smith", "smith"]


def test_extract_handles_missing_authors_column():
    records = parse_csv("Title,Publication Year\nT,2020")
    assert extract_authors(records) == []


def test_extract_idempotent():
    records = parse_csv('Authors\n"B, A."\n"C, A"')
    first = extract_authors(records)
    assert first == ["A", "B", "C"]
    assert extract_authors(records) == first


def main():
    results = [_run_normalize_case(c) for c in NORMALIZE_CASES] + [_run_query_case(c) for c in QUERY_CASES]
    passed = sum(1 for r in results if r["passed"])
    failed = len(results) - passed

    for r in results:
        status = "PASS" if r["passed"] else "FAIL"
        print(f"[{status}] {r['name']}")

    print("---")
    print(f"Total: {len(results)}")
    print(f"Passed: {passed}")
    print(f"Failed: {failed}")


if __name__ == "__main__":
    main()
