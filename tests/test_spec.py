from agentflow.tools.spec import Spec, trim_body


def test_trim_body_strips_whitespace():
    assert trim_body(b"  hello \n") == "hello"


def test_trim_body_accepts_text():
    assert trim_body("\tplain body\r\n") == "plain body"


def test_trim_body_keeps_exactly_limit():
    body = "a" * 256
    assert trim_body(body) == body


def test_trim_body_truncates_long_body():
    result = trim_body("a" * 300)
    assert result == "a" * 256 + "…"


def test_trim_body_truncation_never_splits_characters():
    result = trim_body("é" * 200)
    assert result.endswith("…")
    prefix = result[:-1]
    assert set(prefix) == {"é"}
    assert len(prefix.encode("utf-8")) <= 256


def test_spec_keeps_raw_entry():
    entry = {"name": "wc", "kind": "exec", "command": ["wc", "-w"]}
    spec = Spec(name="wc", kind="exec", raw=entry)
    assert spec.raw["command"] == ["wc", "-w"]
    assert Spec(name="x", kind="y").raw == {}