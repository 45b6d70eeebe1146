from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

import utils
from utils import IconGenerationError

SVG = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 1024 1024"><path d="M0 0"/></svg>'


class FakeFileOutput:
    def __init__(self, content):
        self.content = content

    def read(self):
        return self.content


@pytest.fixture
def replicate_client(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(utils, "get_replicate_client", lambda: client)
    return client


@pytest.fixture
def openai_client(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(utils, "get_openai_client", lambda: client)
    return client


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestReplicateProvider:

    def test_file_output_is_decoded(self, replicate_client):
        replicate_client.run.return_value = FakeFileOutput(SVG.encode("utf-8"))

        assert utils.generate_icon_with_replicate("a fox") == SVG
        args, kwargs = replicate_client.run.call_args
        assert args[0] == utils.RECRAFT_SVG_MODEL
        assert kwargs["input"]["prompt"] == "a fox"
        assert kwargs["input"]["style"] == "icon"

    def test_list_output_uses_first_item(self, replicate_client):
        replicate_client.run.return_value = [FakeFileOutput(SVG.encode("utf-8")), FakeFileOutput(b"other")]
        assert utils.generate_icon_with_replicate("a fox") == SVG

    def test_url_output_is_downloaded(self, replicate_client, monkeypatch):
        replicate_client.run.return_value = "https://replicate.delivery/icon.svg"
        get = MagicMock(return_value=SimpleNamespace(status_code=200, content=SVG.encode("utf-8")))
        monkeypatch.setattr(utils.requests, "get", get)

        assert utils.generate_icon_with_replicate("a fox") == SVG
        assert get.call_args[0][0] == "https://replicate.delivery/icon.svg"

    def test_failed_download(self, replicate_client, monkeypatch):
        replicate_client.run.return_value = "https://replicate.delivery/icon.svg"
        monkeypatch.setattr(utils.requests, "get", MagicMock(return_value=SimpleNamespace(status_code=404)))

        with pytest.raises(IconGenerationError, match="HTTP 404"):
            utils.generate_icon_with_replicate("a fox")

    def test_empty_output(self, replicate_client):
        replicate_client.run.return_value = []
        with pytest.raises(IconGenerationError):
            utils.generate_icon_with_replicate("a fox")

    def test_client_errors_are_wrapped(self, replicate_client):
        replicate_client.run.side_effect = RuntimeError("rate limited")
        with pytest.raises(IconGenerationError, match="rate limited"):
            utils.generate_icon_with_replicate("a fox")


class TestOpenAIProvider:

    def test_svg_block_is_extracted(self, openai_client):
        openai_client.chat.completions.create.return_value = chat_response(
            f"Here is your icon:\n```svg\n{SVG}\n```"
        )
        assert utils.generate_icon_with_openai("a fox") == SVG

    def test_response_without_svg(self, openai_client):
        openai_client.chat.completions.create.return_value = chat_response("I cannot draw that.")
        with pytest.raises(IconGenerationError, match="did not contain SVG"):
            utils.generate_icon_with_openai("a fox")

    def test_client_errors_are_wrapped(self, openai_client):
        openai_client.chat.completions.create.side_effect = RuntimeError("timeout")
        with pytest.raises(IconGenerationError, match="timeout"):
            utils.generate_icon_with_openai("a fox")


class TestGenerateIconSvg:

    @pytest.mark.parametrize("provider, target", [
        ("replicate", "generate_icon_with_replicate"),
        ("openai", "generate_icon_with_openai"),
    ])
    def test_dispatches_on_provider(self, monkeypatch, provider, target):
        monkeypatch.setattr(utils, "ICON_PROVIDER", provider)
        fake = MagicMock(return_value=SVG)
        monkeypatch.setattr(utils, target, fake)

        assert utils.generate_icon_svg("a fox") == SVG
        fake.assert_called_once_with("a fox")

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setattr(utils, "ICON_PROVIDER", "dalle")
        with pytest.raises(IconGenerationError, match="Unknown ICON_PROVIDER"):
            utils.generate_icon_svg("a fox")

    def test_missing_token(self, monkeypatch):
        monkeypatch.setattr(utils, "ICON_PROVIDER", "replicate")
        monkeypatch.setattr(utils, "REPLICATE_API_TOKEN", None)
        utils.get_replicate_client.cache_clear()

        with pytest.raises(IconGenerationError, match="REPLICATE_API_TOKEN"):
            utils.generate_icon_svg("a fox")
