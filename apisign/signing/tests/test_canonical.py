from apisign.signing.canonical import build_path, canonical_bytes, canonicalize


def test_bodyless_request_has_three_segments():
    assert canonicalize("GET", "/api/surveys", 1700000000) == "GET:/api/surveys:1700000000"


def test_body_is_appended_as_last_segment():
    canonical = canonicalize("POST", "/api/surveys", 1700000000, '{"title":"Test"}')
    assert canonical == 'POST:/api/surveys:1700000000:{"title":"Test"}'


def test_empty_body_is_treated_as_absent():
    assert canonicalize("POST", "/api/surveys", 1, b"") == canonicalize("POST", "/api/surveys", 1)
    assert canonicalize("POST", "/api/surveys", 1, "") == "POST:/api/surveys:1"


def test_method_is_used_as_given():
    assert canonicalize("PATCH", "/api/users/1", 5).startswith("PATCH:")
    assert canonicalize("patch", "/api/users/1", 5) != canonicalize("PATCH", "/api/users/1", 5)


def test_str_and_bytes_bodies_are_equivalent():
    assert canonicalize("PUT", "/x", 1, b'{"a":1}') == canonicalize("PUT", "/x", 1, '{"a":1}')


def test_body_containing_delimiter_is_kept_verbatim():
    body = '{"url":"http://a:b@c:8080"}'
    assert canonicalize("POST", "/x", 7, body).endswith(":" + body)


def test_non_utf8_body_bytes_survive():
    body = b"\xff\xfe\x00raw"
    assert canonical_bytes("POST", "/upload", 3, body) == b"POST:/upload:3:" + body


def test_query_string_is_folded_into_path():
    assert build_path("/api/surveys", b"page=2&size=10") == "/api/surveys?page=2&size=10"
    assert build_path("/api/surveys", "") == "/api/surveys"
    assert build_path("/api/surveys", None) == "/api/surveys"
