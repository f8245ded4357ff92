"""Tests for artifact and BuildSpec extraction from generator replies."""

from liveforge.services.build.extraction import (
    extract_artifacts,
    extract_reasoning,
    find_fenced_blocks,
    parse_build_spec,
)
from tests.conftest import GOOD_REPLY, SPEC_REPLY


def test_extracts_all_three_artifacts():
    artifacts = extract_artifacts(GOOD_REPLY)
    assert "pub mod counter" in artifacts.program
    assert "CounterClient" in artifacts.sdk
    assert 'describe("counter"' in artifacts.tests
    assert artifacts.missing == []


def test_reasoning_is_prose_before_first_fence():
    assert extract_reasoning(GOOD_REPLY) == (
        "I will model the counter as a single PDA with an authority check."
    )
    assert extract_reasoning("```rust\nfn x() {}\n```") == ""


def test_missing_blocks_are_reported():
    artifacts = extract_artifacts("Only prose, no code at all.")
    assert artifacts.program is None
    assert artifacts.sdk is None
    assert artifacts.tests is None
    assert artifacts.missing == ["program", "SDK", "tests"]
    assert artifacts.reasoning == "Only prose, no code at all."


def test_single_typescript_block_is_sdk_only():
    text = "```rust\npub mod a {}\n```\n```typescript\nexport const sdk = 1;\n```\n"
    artifacts = extract_artifacts(text)
    assert artifacts.sdk.strip() == "export const sdk = 1;"
    assert artifacts.tests is None
    assert artifacts.missing == ["tests"]


def test_empty_blocks_count_as_missing():
    text = "```rust\n\n```\n```ts\n   \n```\n"
    assert extract_artifacts(text).missing == ["program", "SDK", "tests"]


def test_lang_tags_are_case_insensitive():
    blocks = find_fenced_blocks("```Rust\nfn main() {}\n```")
    assert blocks[0].lang == "rust"
    assert extract_artifacts("```RS\nfn main() {}\n```").program == "fn main() {}\n"


def test_parse_build_spec_from_bare_json():
    spec = parse_build_spec(SPEC_REPLY)
    assert spec.name == "counter"
    assert spec.instructions == ["initialize", "increment"]
    assert spec.state_accounts == ["Counter"]


def test_parse_build_spec_from_fenced_json_with_prose():
    text = f"Here is the spec:\n```json\n{SPEC_REPLY}\n```\nLet me know."
    assert parse_build_spec(text).name == "counter"


def test_parse_build_spec_rejects_garbage():
    assert parse_build_spec("no json here") is None
    assert parse_build_spec('{"description": "missing name"}') is None
    assert parse_build_spec('{"name": "  ", "description": "blank"}') is None
    assert parse_build_spec("") is None
