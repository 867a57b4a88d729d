import io
import os
import sys
import tempfile
import unittest
import zipfile
from pathlib import Path

from fastapi import UploadFile
from starlette.datastructures import Headers

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.uploads import UploadRejectedError, max_upload_bytes, resolve_content_type, stage_upload  # noqa: E402

FIVE_MIB = 5 * 1024 * 1024
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _upload(data: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=Headers({"content-type": content_type}))


class StageUploadTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.upload_dir = self._tmp.name

    async def test_exactly_five_mib_is_accepted(self):
        self.assertEqual(max_upload_bytes(), FIVE_MIB)
        path = await stage_upload(_upload(b"a" * FIVE_MIB, "cv.txt", "text/plain"), upload_dir=self.upload_dir)
        self.assertEqual(os.path.getsize(path), FIVE_MIB)
        self.assertTrue(path.endswith(".txt"))

    async def test_one_byte_over_is_rejected_with_413(self):
        with self.assertRaises(UploadRejectedError) as ctx:
            await stage_upload(_upload(b"a" * (FIVE_MIB + 1), "cv.txt", "text/plain"), upload_dir=self.upload_dir)
        self.assertEqual(ctx.exception.status_code, 413)
        self.assertEqual(os.listdir(self.upload_dir), [])

    async def test_disallowed_type_is_rejected(self):
        with self.assertRaises(UploadRejectedError) as ctx:
            await stage_upload(_upload(b"\x89PNG\r\n\x1a\n", "cv.png", "image/png"), upload_dir=self.upload_dir)
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_pdf_signature_is_checked(self):
        path = await stage_upload(_upload(b"%PDF-1.7 body", "cv.pdf", "application/pdf"), upload_dir=self.upload_dir)
        self.assertTrue(os.path.exists(path))
        with self.assertRaises(UploadRejectedError):
            await stage_upload(_upload(b"not a pdf", "fake.pdf", "application/pdf"), upload_dir=self.upload_dir)
        self.assertEqual(os.listdir(self.upload_dir), [os.path.basename(path)])

    async def test_docx_must_contain_word_part(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("word/document.xml", "<w:document/>")
        path = await stage_upload(_upload(buffer.getvalue(), "cv.docx", DOCX), upload_dir=self.upload_dir)
        self.assertTrue(path.endswith(".docx"))

        other = io.BytesIO()
        with zipfile.ZipFile(other, "w") as archive:
            archive.writestr("ppt/slide1.xml", "<p/>")
        with self.assertRaises(UploadRejectedError):
            await stage_upload(_upload(other.getvalue(), "cv.docx", DOCX), upload_dir=self.upload_dir)

    async def test_empty_file_is_rejected(self):
        with self.assertRaises(UploadRejectedError):
            await stage_upload(_upload(b"", "cv.txt", "text/plain"), upload_dir=self.upload_dir)

    def test_octet_stream_falls_back_to_filename(self):
        self.assertEqual(resolve_content_type("cv.pdf", "application/octet-stream"), "application/pdf")
        self.assertEqual(resolve_content_type("cv.txt", "text/plain; charset=utf-8"), "text/plain")


if __name__ == "__main__":
    unittest.main()
