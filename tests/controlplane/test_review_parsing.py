"""Unit tests for review body validation and the file-existence gate."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from hegelide.controlplane.review import check_files_exist, parse_review_request
from hegelide.core.exceptions import ReviewRequestError


class TestParseReviewRequest:
    def test_valid_body(self) -> None:
        req = parse_review_request(json.dumps({"files": ["/a.md", "/b.md"]}))
        assert req.files == ("/a.md", "/b.md")

    def test_accepts_bytes(self) -> None:
        assert parse_review_request(b'{"files": ["/a.md"]}').files == ("/a.md",)

    def test_extra_fields_ignored(self) -> None:
        assert parse_review_request('{"files": ["/a.md"], "focus": 3}').files == ("/a.md",)

    def test_duplicates_kept(self) -> None:
        assert parse_review_request('{"files": ["/a.md", "/a.md"]}').files == ("/a.md", "/a.md")

    @pytest.mark.parametrize("body", ["", "{", "files=/a.md", b"\xc3\x28"])
    def test_invalid_json(self, body) -> None:
        with pytest.raises(ReviewRequestError, match="Invalid JSON"):
            parse_review_request(body)

    @pytest.mark.parametrize("body", ["[]", '"files"', "42", "null"])
    def test_non_object(self, body: str) -> None:
        with pytest.raises(ReviewRequestError, match="JSON object"):
            parse_review_request(body)

    @pytest.mark.parametrize(
        "body",
        ["{}", '{"files": null}', '{"files": ""}', '{"files": 0}', '{"files": false}', '{"other": []}'],
    )
    def test_missing_files(self, body: str) -> None:
        with pytest.raises(ReviewRequestError, match="^Missing required field: files$"):
            parse_review_request(body)

    @pytest.mark.parametrize(
        "body", ['{"files": "/a.md"}', '{"files": {"a": 1}}', '{"files": {}}', '{"files": 7}']
    )
    def test_files_not_array(self, body: str) -> None:
        with pytest.raises(ReviewRequestError, match="^files must be an array$"):
            parse_review_request(body)

    def test_empty_array(self) -> None:
        with pytest.raises(ReviewRequestError, match="^files array cannot be empty$"):
            parse_review_request('{"files": []}')

    @pytest.mark.parametrize(
        ("files", "index"),
        [([1], 0), (["/a.md", None], 1), (["/a.md", "/b.md", ["/c.md"]], 2)],
    )
    def test_non_string_entry_named_by_index(self, files, index: int) -> None:
        with pytest.raises(ReviewRequestError, match=rf"^files\[{index}\] must be a string$"):
            parse_review_request(json.dumps({"files": files}))


class TestCheckFilesExist:
    @pytest.mark.asyncio
    async def test_all_present(self, review_files) -> None:
        check = await check_files_exist(review_files)
        assert check.valid
        assert check.missing == []

    @pytest.mark.asyncio
    async def test_missing_in_request_order(self, review_files, tmp_path: Path) -> None:
        gone_b = str(tmp_path / "b-gone.md")
        gone_a = str(tmp_path / "a-gone.md")
        check = await check_files_exist([gone_b, review_files[0], gone_a])
        assert not check.valid
        assert check.missing == [gone_b, gone_a]

    @pytest.mark.asyncio
    async def test_directory_counts_as_existing(self, tmp_path: Path) -> None:
        assert (await check_files_exist([str(tmp_path)])).valid
