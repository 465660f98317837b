"""
PDF Service

컴파일 문서 PDF 생성 (PyMuPDF)
"""

import asyncio
import enum
import html
import io
import logging
from dataclasses import dataclass, field
from typing import Optional

import pymupdf as fitz

logger = logging.getLogger(__name__)

PAGE_RECT = fitz.paper_rect("a4")
CONTENT_RECT = PAGE_RECT + (48, 48, -48, -48)

STORY_CSS = """
body { font-family: sans-serif; font-size: 10pt; }
h1 { font-size: 18pt; }
h2 { font-size: 13pt; margin-top: 14pt; }
p.meta { color: #555555; font-size: 8pt; }
p.note { color: #aa3333; }
"""


class OriginalFileType(str, enum.Enum):
    """원본 파일 타입 (임베딩 방식 결정)"""
    PDF = "pdf"
    PNG = "png"
    JPEG = "jpeg"
    UNSUPPORTED = "unsupported"


class PdfRenderError(Exception):
    """PDF 생성 실패"""


@dataclass
class CompiledPdfData:
    """PDF 렌더러 입력 (다운로드 번들)"""
    original_file_name: str
    extracted_text: str
    history: list[dict] = field(default_factory=list)
    original_file_bytes: Optional[bytes] = None
    file_type: OriginalFileType = OriginalFileType.UNSUPPORTED
    original_file_error: Optional[str] = None


def _paragraphs(text: str) -> str:
    return "<br/>".join(html.escape(line) for line in text.splitlines()) or "&nbsp;"


class PdfService:
    """
    컴파일 문서 PDF 렌더링 서비스
    """

    @staticmethod
    def build_html(data: CompiledPdfData) -> str:
        """
        본문(제목, 추출 텍스트, 대화 기록) HTML 구성

        Args:
            data: 번들 데이터

        Returns:
            str: Story에 넣을 HTML
        """
        parts = [
            "<h1>Compiled Document</h1>",
            f"<p><b>Original file:</b> {html.escape(data.original_file_name)}</p>",
        ]

        if data.original_file_bytes is None:
            reason = data.original_file_error or "Original file is not available."
            parts.append(f'<p class="note">The original file could not be embedded. {html.escape(reason)}</p>')
        elif data.file_type == OriginalFileType.UNSUPPORTED:
            parts.append('<p class="note">The original file type is not supported for embedding.</p>')
        else:
            parts.append("<p>The original file is attached at the end of this document.</p>")

        parts.append("<h2>Extracted Text</h2>")
        parts.append(f"<p>{_paragraphs(data.extracted_text)}</p>")

        parts.append("<h2>Conversation</h2>")
        if not data.history:
            parts.append("<p>No messages.</p>")
        for item in data.history:
            meta = f"{html.escape(str(item.get('sender', '')))} &middot; {html.escape(str(item.get('createdAt', '')))}"
            if item.get("isSourceDocument"):
                meta += f" &middot; document: {html.escape(str(item.get('fileName', '')))}"
            parts.append(f'<p class="meta">{meta}</p>')
            parts.append(f"<p>{_paragraphs(str(item.get('content', '')))}</p>")

        return "\n".join(parts)

    @staticmethod
    def _render_story(body_html: str) -> fitz.Document:
        buffer = io.BytesIO()
        story = fitz.Story(html=body_html, user_css=STORY_CSS)
        writer = fitz.DocumentWriter(buffer)
        more = 1
        while more:
            device = writer.begin_page(PAGE_RECT)
            more, _ = story.place(CONTENT_RECT)
            story.draw(device)
            writer.end_page()
        writer.close()
        return fitz.open("pdf", buffer.getvalue())

    @staticmethod
    def _embed_original(doc: fitz.Document, data: CompiledPdfData) -> None:
        if data.original_file_bytes is None or data.file_type == OriginalFileType.UNSUPPORTED:
            return

        try:
            if data.file_type == OriginalFileType.PDF:
                with fitz.open(stream=data.original_file_bytes, filetype="pdf") as original:
                    doc.insert_pdf(original)
            else:
                page = doc.new_page(width=PAGE_RECT.width, height=PAGE_RECT.height)
                page.insert_image(CONTENT_RECT, stream=data.original_file_bytes, keep_proportion=True)
        except Exception:
            logger.exception("Could not embed original file %s", data.original_file_name)

    @staticmethod
    def _render(data: CompiledPdfData) -> bytes:
        doc = PdfService._render_story(PdfService.build_html(data))
        try:
            PdfService._embed_original(doc, data)
            doc.set_metadata({"title": f"Compiled - {data.original_file_name}"})
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

    @staticmethod
    async def render_compiled_pdf(data: CompiledPdfData) -> bytes:
        """
        컴파일 문서 PDF 생성

        Args:
            data: 번들 데이터

        Returns:
            bytes: PDF 바이트

        Raises:
            PdfRenderError: PDF 생성 실패 시
        """
        try:
            return await asyncio.to_thread(PdfService._render, data)
        except Exception as e:
            logger.exception("PDF rendering failed for %s", data.original_file_name)
            raise PdfRenderError(str(e)) from e
