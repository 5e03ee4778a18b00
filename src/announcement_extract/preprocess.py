"""
공고 텍스트 전처리 및 소스 결합
"""
import re
from typing import List
import logging

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt

from .schema import DocumentSources

logger = logging.getLogger(__name__)


class MarkdownPreprocessor:
    """
    Markdown 변환본 평탄화

    HWP/PDF 변환기가 만든 Markdown 표의 행을 `항목: 값` 줄로 바꿔
    콜론 기반 Tier 1 패턴이 표 안의 값도 찾을 수 있게 한다.
    """

    def __init__(self):
        self.md = MarkdownIt("commonmark").enable("table")

    def clean_text(self, text: str) -> str:
        """공백 정리"""
        text = text.replace('\r\n', '\n').replace('\u00a0', ' ')
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r'\n\s*\n+', '\n\n', text)
        return text.strip()

    def flatten(self, content: str) -> str:
        """Markdown을 줄 단위 평문으로 변환"""
        if not content or not content.strip():
            return ""

        try:
            tokens = self.md.parse(content)
        except Exception as e:
            logger.error(f"Markdown 파싱 실패, 원문 사용: {e}")
            return self.clean_text(content)

        lines: List[str] = []
        row = None

        for token in tokens:
            if token.type == 'tr_open':
                row = []
            elif token.type == 'tr_close':
                if row:
                    lines.append(self._row_to_line(row))
                row = None
            elif token.type == 'inline':
                if row is not None:
                    row.append(token.content.strip())
                elif token.content.strip():
                    lines.append(token.content.strip())
            elif token.type in ('fence', 'code_block', 'html_block'):
                if token.content.strip():
                    lines.append(token.content.strip())

        return self.clean_text('\n'.join(lines))

    def _row_to_line(self, cells: List[str]) -> str:
        """표 행 -> `첫 칸: 나머지` 형태"""
        cells = [c for c in cells if c]
        if len(cells) >= 2:
            return f"{cells[0]}: {' / '.join(cells[1:])}"
        return cells[0] if cells else ""


def html_to_text(html: str) -> str:
    """상세 페이지 HTML을 줄 단위 평문으로 변환 (2칸 이상 표 행은 `항목: 값`)"""
    if not html or not html.strip():
        return ""
    if '<' not in html:
        return html.strip()

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    for tr in soup.find_all("tr"):
        cells = [c.get_text(" ", strip=True) for c in tr.find_all(["th", "td"])]
        cells = [c for c in cells if c]
        if len(cells) >= 2:
            tr.replace_with(f"\n{cells[0]}: {' / '.join(cells[1:])}\n")

    text = soup.get_text("\n")
    lines = [re.sub(r'\s+', ' ', line).strip() for line in text.splitlines()]
    return '\n'.join(line for line in lines if line)


def compose_announcement_text(sources: DocumentSources, preprocessor: MarkdownPreprocessor = None) -> str:
    """
    우선순위 순으로 모든 소스를 결합

    공고문 첨부파일 > 상세 페이지 > 설명. 뒤쪽 소스도 Tier 2/3 문맥으로
    쓰일 수 있으므로 첫 소스에서 멈추지 않고 모두 이어 붙인다.
    """
    parts: List[str] = []

    for text in sources.announcement_texts:
        if not text or not text.strip():
            continue
        if sources.markdown:
            preprocessor = preprocessor or MarkdownPreprocessor()
            text = preprocessor.flatten(text)
        parts.append(text.strip())

    page_text = html_to_text(sources.raw_html)
    if page_text:
        parts.append(page_text)

    if sources.description and sources.description.strip():
        parts.append(sources.description.strip())

    return '\n\n'.join(parts)
