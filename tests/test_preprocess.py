"""텍스트 전처리 및 소스 결합 테스트"""

from datetime import date

from announcement_extract.preprocess import MarkdownPreprocessor, compose_announcement_text, html_to_text
from announcement_extract.rules import run_tier1
from announcement_extract.schema import DocumentSources

MARKDOWN_TABLE = """# 사업 개요

| 구분 | 내용 |
|---|---|
| 신청마감일 | 2025-03-15 |
| 지원규모 | 총 52억원 |
"""


class TestMarkdownPreprocessor:

    def test_table_rows_become_colon_lines(self):
        flat = MarkdownPreprocessor().flatten(MARKDOWN_TABLE)
        assert "신청마감일: 2025-03-15" in flat
        assert "지원규모: 총 52억원" in flat
        assert "사업 개요" in flat

    def test_flattened_table_feeds_tier1(self):
        flat = MarkdownPreprocessor().flatten(MARKDOWN_TABLE)
        results = {r.field: r.value for r in run_tier1(flat)}
        assert results["deadline"] == date(2025, 3, 15)
        assert results["budgetAmount"] == 5_200_000_000

    def test_empty(self):
        assert MarkdownPreprocessor().flatten("   ") == ""

    def test_clean_text(self):
        cleaned = MarkdownPreprocessor().clean_text("a  b\r\n\n\n\nc")
        assert cleaned == "a b\n\nc"


class TestHtmlToText:

    def test_table_row_and_script(self):
        html = (
            "<html><body><script>var x = 1;</script>"
            "<table><tr><th>접수마감일</th><td>2025-03-15</td></tr></table>"
            "<p>문의처: 한국연구재단</p></body></html>"
        )
        text = html_to_text(html)
        assert "접수마감일: 2025-03-15" in text.splitlines()
        assert "var x" not in text
        assert "문의처: 한국연구재단" in text

    def test_plain_text_passthrough(self):
        assert html_to_text("  상세 설명  ") == "상세 설명"

    def test_empty(self):
        assert html_to_text("") == ""


class TestComposeAnnouncementText:

    def test_priority_order_and_blank_lines(self):
        sources = DocumentSources(
            announcement_texts=["첨부 공고문", "   "],
            raw_html="상세 페이지",
            description="설명",
        )
        assert compose_announcement_text(sources) == "첨부 공고문\n\n상세 페이지\n\n설명"

    def test_markdown_flag_flattens(self):
        sources = DocumentSources(announcement_texts=[MARKDOWN_TABLE], markdown=True)
        assert "신청마감일: 2025-03-15" in compose_announcement_text(sources)

    def test_empty_sources(self):
        assert compose_announcement_text(DocumentSources()) == ""
