from pdf_quickbooks.domain.ai_json import extract_json_object


def test_plain_json() -> None:
    assert extract_json_object('{"a": 1}') == {"a": 1}


def test_json_inside_prose_and_fences() -> None:
    text = 'Sure! Here it is:\n```json\n{"vendor": "Acme", "amount": "10"}\n```\nLet me know.'
    assert extract_json_object(text) == {"vendor": "Acme", "amount": "10"}


def test_nested_objects_and_braces_in_strings() -> None:
    text = 'Result: {"description": "brace } inside", "meta": {"n": 2}} trailing {junk'
    assert extract_json_object(text) == {"description": "brace } inside", "meta": {"n": 2}}


def test_escaped_quotes_in_strings() -> None:
    text = 'x {"vendor": "Joe \\"The Plumber\\"", "amount": "5"} y'
    assert extract_json_object(text) == {"vendor": 'Joe "The Plumber"', "amount": "5"}


def test_skips_unparseable_candidate() -> None:
    text = "{not json} then {\"ok\": true}"
    assert extract_json_object(text) == {"ok": True}


def test_no_object() -> None:
    assert extract_json_object("") is None
    assert extract_json_object(None) is None
    assert extract_json_object("[1, 2, 3]") is None
    assert extract_json_object("no braces here") is None
    assert extract_json_object('{"unterminated": 1') is None
