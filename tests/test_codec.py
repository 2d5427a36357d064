"""Tests for the attachment codec."""

import pytest

from webhook_chat import codec
from webhook_chat.core import Attachment, RawFile
from webhook_chat.errors import MalformedPayload


class TestEncode:
    def test_image_fields(self, png_file):
        att = codec.encode(png_file)
        assert att.mime_type == "image/png"
        assert att.file_type == "image"
        assert att.file_extension == "png"
        assert att.file_name == "pixel.png"
        assert att.file_size == f"{len(png_file.content) / 1024:.1f} KB"

    def test_size_one_decimal_kb(self):
        raw = RawFile(name="big.jpg", content_type="image/jpeg", content=b"x" * 1536)
        assert codec.encode(raw).file_size == "1.5 KB"

    def test_name_without_extension(self):
        raw = RawFile(name="screenshot", content_type="image/png", content=b"abc")
        assert codec.encode(raw).file_extension == ""

    def test_extension_uses_last_suffix(self):
        assert codec.file_extension("archive.tar.gz") == "gz"

    def test_rejects_non_image(self, text_file):
        with pytest.raises(ValueError):
            codec.encode(text_file)

    def test_round_trip(self, png_file):
        assert codec.decode(codec.encode(png_file)) == png_file.content


class TestEncodeAll:
    def test_none_and_empty(self):
        assert codec.encode_all(None) is None
        assert codec.encode_all([]) is None

    def test_only_non_images_gives_none(self, text_file):
        assert codec.encode_all([text_file]) is None

    def test_keys_follow_selection_order(self, png_file):
        second = RawFile(name="two.gif", content_type="image/gif", content=b"GIF89a")
        result = codec.encode_all([png_file, second])
        assert list(result) == ["data0", "data1"]
        assert result["data1"].file_name == "two.gif"

    def test_non_images_dropped(self, png_file, text_file):
        result = codec.encode_all([text_file, png_file])
        assert list(result) == ["data1"]
        assert result["data1"].file_name == "pixel.png"


class TestDecode:
    def _attachment(self, data: str) -> Attachment:
        return Attachment(
            mime_type="image/png",
            file_type="image",
            file_extension="png",
            data=data,
            file_name="x.png",
            file_size="0.1 KB",
        )

    def test_decodes_valid_base64(self):
        assert codec.decode(self._attachment("aGVsbG8=")) == b"hello"

    def test_ignores_line_wrapping(self):
        wrapped = "aGVs\r\nbG8=\n"
        assert codec.decode(self._attachment(wrapped)) == b"hello"

    @pytest.mark.parametrize("bad", ["not base64!!", "abc", "ü=="])
    def test_invalid_base64(self, bad):
        with pytest.raises(MalformedPayload):
            codec.decode(self._attachment(bad))
