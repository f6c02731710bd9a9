import pytest

from reactornet.message import HttpRequest, HttpResponse


def test_request_defaults():
    req = HttpRequest()
    assert req.version == "HTTP/1.1"
    assert req.method == ""
    assert req.headers == {}


def test_request_header_insert_does_not_overwrite():
    req = HttpRequest()
    assert req.insert_header("Host", "a.example.com") is True
    assert req.insert_header("Host", "b.example.com") is False
    assert req.get_header("Host") == "a.example.com"
    assert req.has_header("Host")
    assert not req.has_header("Accept")
    assert req.get_header("Accept") == ""


def test_request_params():
    req = HttpRequest()
    assert req.insert_param("a", "1") is True
    assert req.insert_param("a", "2") is False
    assert req.get_param("a") == "1"
    assert req.has_param("a")
    assert req.get_param("missing") == ""


def test_content_length_parsed_with_leading_space():
    req = HttpRequest()
    req.insert_header("Content-Length", " 40")
    assert req.content_length() == 40


def test_content_length_missing_raises():
    with pytest.raises(ValueError):
        HttpRequest().content_length()


def test_request_keep_alive():
    req = HttpRequest()
    assert req.is_keep_alive() is False
    req.insert_header("Connection", "keep-alive")
    assert req.is_keep_alive() is True


def test_request_reset():
    req = HttpRequest(method="GET", path="/index.html", version="HTTP/1.0", body="x")
    req.insert_header("Connection", "keep-alive")
    req.insert_param("k", "v")
    req.reset()
    assert req == HttpRequest()


def test_response_defaults():
    rsp = HttpResponse()
    assert rsp.status == 201
    assert rsp.version == "HTTP/1.1"
    assert rsp.is_redirect is False


def test_response_set_content_sets_type():
    rsp = HttpResponse()
    rsp.set_content("<html></html>")
    assert rsp.body == "<html></html>"
    assert rsp.get_header("Content-Type") == "text/html"
    other = HttpResponse()
    other.set_content(b"raw", "application/txt")
    assert other.get_header("Content-Type") == "application/txt"


def test_response_insert_header_keeps_first():
    rsp = HttpResponse()
    assert rsp.insert_header("Connection", "close") is True
    rsp.insert_header("Connection", "keep-alive")
    assert rsp.get_header("Connection") == "close"
    assert rsp.is_keep_alive() is False
    assert rsp.get_header("Missing") == ""


def test_response_redirect():
    rsp = HttpResponse()
    rsp.set_redirect("/new")
    assert rsp.status == 302
    assert rsp.redirect_url == "/new"
    rsp.set_redirect("/other", 301)
    assert rsp.status == 301


def test_response_reset():
    rsp = HttpResponse()
    rsp.set_content("body")
    rsp.set_redirect("/x")
    rsp.insert_header("Connection", "keep-alive")
    assert rsp.is_keep_alive() is True
    rsp.reset()
    assert rsp == HttpResponse()