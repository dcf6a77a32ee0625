"""
Unit tests for labeling prompt construction.
"""
from cardgraph.semantic.prompts import LABEL_PROMPT, SYSTEM_PROMPT, build_label_prompt, build_messages

PAIRS = [{"id": "a|b", "A": {"front": "Dog"}, "B": {"front": "Mammal"}}]


def test_prompt_lists_every_relation():
    prompt = build_label_prompt(PAIRS)

    for relation in ("same-topic", "prerequisite-of", "part-of", "cause-of", "contrasts-with", "duplicate-of", "example-of"):
        assert relation in prompt


def test_pairs_are_compact_json():
    prompt = build_label_prompt(PAIRS)

    assert prompt.endswith('Pairs:\n[{"id":"a|b","A":{"front":"Dog"},"B":{"front":"Mammal"}}]\n')


def test_pairs_are_truncated():
    pairs = [{"id": f"card{i}|x", "A": {"front": "x" * 200}, "B": {"front": "y"}} for i in range(100)]

    prompt = build_label_prompt(pairs, max_chars=500)
    serialized = prompt.split("Pairs:\n", 1)[1]

    assert len(serialized) == 501
    assert len(prompt) < len(LABEL_PROMPT) + 600


def test_messages_roles():
    messages = build_messages(PAIRS)

    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert messages[1]["role"] == "user"
