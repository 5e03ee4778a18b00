"""
필드 레지스트리 및 Tier 1 패턴 정의

공고문 필드 20개를 4개 그룹(A~D)으로 선언하고, 규칙 기반(무비용) 추출에
사용하는 정규식 패턴을 등록 순서대로 보관한다. 같은 필드에 대해 먼저 등록된
패턴이 우선하며, 후처리 함수가 None이 아닌 값을 돌려준 첫 패턴에서 멈춘다.
"""
import math
import re
import logging
from dataclasses import dataclass, field as dc_field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .schema import Confidence, FieldGroup

logger = logging.getLogger(__name__)


class AnnouncementField(str, Enum):
    """추출 대상 필드 (값은 응답 JSON 키와 동일)"""
    # Group A: 일정 및 운영
    APPLICATION_START = "applicationStart"
    DEADLINE = "deadline"
    DEADLINE_TIME_RULE = "deadlineTimeRule"
    PUBLISHED_AT = "publishedAt"
    SUBMISSION_SYSTEM = "submissionSystem"
    CONTACT_INFO = "contactInfo"
    # Group B: 예산 및 기간
    BUDGET_AMOUNT = "budgetAmount"
    BUDGET_PER_PROJECT = "budgetPerProject"
    FUNDING_RATE = "fundingRate"
    FUNDING_PERIOD = "fundingPeriod"
    NUM_AWARDS = "numAwards"
    # Group C: 지원 자격
    TARGET_TYPE = "targetType"
    LEAD_ROLE_ALLOWED = "leadRoleAllowed"
    CO_ROLE_ALLOWED = "coRoleAllowed"
    REQUIRES_RESEARCH_INSTITUTE = "requiresResearchInstitute"
    REQUIRED_CERTIFICATIONS = "requiredCertifications"
    EXCLUSION_RULES = "exclusionRules"
    # Group D: 기술 도메인
    KEYWORDS = "keywords"
    PRIMARY_TARGET_INDUSTRY = "primaryTargetIndustry"
    SEMANTIC_SUB_DOMAIN = "semanticSubDomain"


F = AnnouncementField

FIELD_GROUP_MAP: Dict[AnnouncementField, FieldGroup] = {
    F.APPLICATION_START: FieldGroup.A,
    F.DEADLINE: FieldGroup.A,
    F.DEADLINE_TIME_RULE: FieldGroup.A,
    F.PUBLISHED_AT: FieldGroup.A,
    F.SUBMISSION_SYSTEM: FieldGroup.A,
    F.CONTACT_INFO: FieldGroup.A,
    F.BUDGET_AMOUNT: FieldGroup.B,
    F.BUDGET_PER_PROJECT: FieldGroup.B,
    F.FUNDING_RATE: FieldGroup.B,
    F.FUNDING_PERIOD: FieldGroup.B,
    F.NUM_AWARDS: FieldGroup.B,
    F.TARGET_TYPE: FieldGroup.C,
    F.LEAD_ROLE_ALLOWED: FieldGroup.C,
    F.CO_ROLE_ALLOWED: FieldGroup.C,
    F.REQUIRES_RESEARCH_INSTITUTE: FieldGroup.C,
    F.REQUIRED_CERTIFICATIONS: FieldGroup.C,
    F.EXCLUSION_RULES: FieldGroup.C,
    F.KEYWORDS: FieldGroup.D,
    F.PRIMARY_TARGET_INDUSTRY: FieldGroup.D,
    F.SEMANTIC_SUB_DOMAIN: FieldGroup.D,
}

ALL_FIELDS: List[AnnouncementField] = list(FIELD_GROUP_MAP)

# 값 종류: LLM 응답 정규화와 YAML 큐레이션 패턴 후처리에 사용
FIELD_KINDS: Dict[AnnouncementField, str] = {
    F.APPLICATION_START: "date",
    F.DEADLINE: "date",
    F.DEADLINE_TIME_RULE: "text",
    F.PUBLISHED_AT: "date",
    F.SUBMISSION_SYSTEM: "text",
    F.CONTACT_INFO: "text",
    F.BUDGET_AMOUNT: "amount",
    F.BUDGET_PER_PROJECT: "amount",
    F.FUNDING_RATE: "text",
    F.FUNDING_PERIOD: "text",
    F.NUM_AWARDS: "integer",
    F.TARGET_TYPE: "list",
    F.LEAD_ROLE_ALLOWED: "list",
    F.CO_ROLE_ALLOWED: "list",
    F.REQUIRES_RESEARCH_INSTITUTE: "boolean",
    F.REQUIRED_CERTIFICATIONS: "list",
    F.EXCLUSION_RULES: "list",
    F.KEYWORDS: "list",
    F.PRIMARY_TARGET_INDUSTRY: "text",
    F.SEMANTIC_SUB_DOMAIN: "object",
}

TARGET_TYPES = ("COMPANY", "RESEARCH_INSTITUTE", "UNIVERSITY", "PUBLIC_INSTITUTION")

KOREAN_UNIT_MULTIPLIERS = {
    "억": 100_000_000,
    "백만": 1_000_000,
    "천만": 10_000_000,
    "만": 10_000,
}

MAX_DIRECT_WON = 1_000_000_000_000

_FLAGS = re.IGNORECASE | re.MULTILINE
_LIST_SPLIT = re.compile(r"[,;，；·]")
_AMOUNT_WITH_UNIT = re.compile(r"([\d,\.]+)\s*(억|백만|천만|만)\s*원?")


def field_group(field: AnnouncementField) -> FieldGroup:
    return FIELD_GROUP_MAP[field]


def to_field(name: str) -> Optional[AnnouncementField]:
    """응답 키를 필드로 변환 (알 수 없는 키는 None)"""
    try:
        return AnnouncementField(name)
    except ValueError:
        return None


# ============================================================================
# 공통 파서
# ============================================================================

def parse_budget_to_won(amount_str: str, unit_str: str) -> Optional[int]:
    """
    한국어 금액 단위를 원 단위 정수로 변환

    "52", "억" -> 5,200,000,000 / "300", "백만" -> 300,000,000
    0 이하 값이나 알 수 없는 단위는 None.
    """
    if not amount_str:
        return None
    multiplier = KOREAN_UNIT_MULTIPLIERS.get((unit_str or "").strip())
    if multiplier is None:
        return None
    try:
        num = float(amount_str.replace(",", "").strip())
    except ValueError:
        return None
    if not math.isfinite(num) or num <= 0:
        return None
    return int(round(num * multiplier))


def parse_korean_date(date_str: str) -> Optional[date]:
    """'2025년 3월 15일', '2025.03.15', '2025/3/15' 등을 date로 변환"""
    if not date_str:
        return None
    cleaned = (
        date_str.replace("년", "-")
        .replace("월", "-")
        .replace("일", "")
        .replace(".", "-")
        .replace("/", "-")
    )
    cleaned = re.sub(r"\s+", "", cleaned).strip("-")
    m = re.fullmatch(r"(\d{4})-(\d{1,2})-(\d{1,2})", cleaned)
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def split_list(raw: str, max_item_len: Optional[int] = None, min_item_len: int = 1) -> List[str]:
    """쉼표/세미콜론/가운뎃점 구분 목록 분리"""
    items = [s.strip() for s in _LIST_SPLIT.split(raw)]
    items = [s for s in items if len(s) >= min_item_len]
    if max_item_len is not None:
        items = [s for s in items if len(s) < max_item_len]
    return items


def _group(match: re.Match, index: int) -> Optional[str]:
    """캡처 그룹 값 (없거나 비어 있으면 None)"""
    if index > (match.re.groups or 0):
        return None
    value = match.group(index)
    if value is None or not value.strip():
        return None
    return value


# ============================================================================
# 값 정규화 (LLM 응답 및 큐레이션 패턴)
# ============================================================================

def _coerce_amount(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(round(value)) if 0 < value < MAX_DIRECT_WON * 100 else None
    if isinstance(value, str):
        unit_match = _AMOUNT_WITH_UNIT.search(value)
        if unit_match:
            return parse_budget_to_won(unit_match.group(1), unit_match.group(2))
        digits = value.replace(",", "").replace("원", "").strip()
        if re.fullmatch(r"\d+(?:\.\d+)?", digits):
            amount = int(round(float(digits)))
            return amount if 0 < amount < MAX_DIRECT_WON * 100 else None
    return None


def _coerce_integer(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, str):
        m = re.search(r"\d+", value)
        if m:
            number = int(m.group(0))
            return number if number > 0 else None
    return None


def _coerce_list(value: Any) -> Optional[List[str]]:
    if isinstance(value, str):
        items = split_list(value)
    elif isinstance(value, (list, tuple)):
        items = [str(v).strip() for v in value if v is not None and str(v).strip()]
    else:
        return None
    return items or None


def _coerce_boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "필수", "예"):
            return True
        if lowered in ("false", "no", "아니오"):
            return False
    return None


def coerce_value(field: AnnouncementField, value: Any) -> Any:
    """필드 종류에 맞게 값 정규화. 정규화할 수 없으면 None."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in ("", "null", "none"):
        return None

    kind = FIELD_KINDS[field]
    if kind == "date":
        if isinstance(value, date):
            return value
        return parse_korean_date(value) if isinstance(value, str) else None
    if kind == "amount":
        return _coerce_amount(value)
    if kind == "integer":
        return _coerce_integer(value)
    if kind == "boolean":
        return _coerce_boolean(value)
    if kind == "list":
        items = _coerce_list(value)
        if items and field == F.TARGET_TYPE:
            items = [t.upper() for t in items if t.upper() in TARGET_TYPES] or None
        return items
    if kind == "object":
        return value if isinstance(value, dict) and value else None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value.strip() if isinstance(value, str) else None


# ============================================================================
# 규칙 정의
# ============================================================================

PostProcess = Callable[[re.Match, str], Any]


@dataclass
class PatternRule:
    """필드 하나에 대한 정규식 규칙 (패턴은 등록 순서대로 시도)"""
    field: AnnouncementField
    patterns: List[re.Pattern]
    post_process: PostProcess
    confidence: Confidence
    description: str
    group: FieldGroup = dc_field(init=False)

    def __post_init__(self):
        self.group = FIELD_GROUP_MAP[self.field]

    def apply(self, text: str) -> Optional[Tuple[Any, str]]:
        """
        첫 번째로 매칭되고 후처리 값이 None이 아닌 패턴의 (값, 패턴) 반환

        후처리 함수 예외는 해당 패턴의 불일치로 취급한다.
        """
        for pattern in self.patterns:
            match = pattern.search(text)
            if not match:
                continue
            try:
                value = self.post_process(match, text)
            except (ValueError, TypeError, IndexError, OverflowError) as e:
                logger.debug(f"후처리 실패 {self.field.value} ({pattern.pattern}): {e}")
                continue
            if value is not None:
                return value, pattern.pattern
        return None


class PatternRuleList:
    """
    등록 순서를 보존하는 규칙 목록

    필드별로 등록 순서대로 규칙을 시도하며, 첫 성공에서 반복을 멈춘다.
    """

    def __init__(self, rules: Optional[List[PatternRule]] = None):
        self._rules: List[PatternRule] = []
        for rule in rules or []:
            self.add(rule)

    def add(self, rule: PatternRule):
        self._rules.append(rule)

    def extend(self, rules: List[PatternRule]):
        for rule in rules:
            self.add(rule)

    def __iter__(self) -> Iterator[PatternRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def fields(self) -> List[AnnouncementField]:
        """규칙이 있는 필드 (첫 등록 순서)"""
        seen: List[AnnouncementField] = []
        for rule in self._rules:
            if rule.field not in seen:
                seen.append(rule.field)
        return seen

    def rules_for(self, field: AnnouncementField) -> List[PatternRule]:
        return [rule for rule in self._rules if rule.field == field]

    def first_match(self, field: AnnouncementField, text: str) -> Optional[Tuple[PatternRule, Any]]:
        """필드의 첫 성공 규칙과 값"""
        for rule in self.rules_for(field):
            hit = rule.apply(text)
            if hit is not None:
                return rule, hit[0]
        return None


def _compile(*patterns: str) -> List[re.Pattern]:
    return [re.compile(p, _FLAGS) for p in patterns]


# --- 후처리 함수 ---

def _date_value(match: re.Match, _text: str) -> Optional[date]:
    raw = _group(match, 1)
    return parse_korean_date(raw) if raw else None


def _past_date_value(match: re.Match, text: str) -> Optional[date]:
    parsed = _date_value(match, text)
    if parsed and parsed <= date.today():
        return parsed
    return None


def _stripped(match: re.Match, _text: str) -> Optional[str]:
    raw = _group(match, 1)
    return raw.strip() if raw else None


def _contact_value(match: re.Match, _text: str) -> Optional[str]:
    raw = _group(match, 1)
    if not raw:
        return None
    first_line = re.split(r"[\n\r]", raw.strip())[0]
    return first_line[:100] or None


def _budget_amount(match: re.Match, _text: str) -> Optional[int]:
    amount = _group(match, 1)
    if not amount:
        return None
    unit = _group(match, 2)
    if unit:
        return parse_budget_to_won(amount, unit)
    # "금 액 : 45,000,000원" 형태의 원 단위 직접 표기
    digits = amount.replace(",", "")
    if not digits.isdigit():
        return None
    direct = int(digits)
    return direct if 0 < direct < MAX_DIRECT_WON else None


def _budget_with_unit(match: re.Match, _text: str) -> Optional[int]:
    amount, unit = _group(match, 1), _group(match, 2)
    if not amount or not unit:
        return None
    return parse_budget_to_won(amount, unit)


def _funding_rate(match: re.Match, _text: str) -> Optional[str]:
    first, second = _group(match, 1), _group(match, 2)
    if first is None:
        return None
    first_pct = int(first)
    if first_pct > 100:
        return None
    if second is not None:
        if int(second) > 100:
            return None
        return f"정부 {first_pct}%, 민간 {int(second)}%"
    if "대응자금" in match.group(0):
        return f"정부 {100 - first_pct}%, 민간 {first_pct}%"
    return f"정부 {first_pct}%"


def _funding_period(match: re.Match, _text: str) -> Optional[str]:
    start, end, unit = _group(match, 1), _group(match, 2), _group(match, 3)
    if start and end and unit:
        return f"{start}{unit}~{end}{unit}"
    return start.strip() if start else None


def _positive_int(match: re.Match, _text: str) -> Optional[int]:
    raw = _group(match, 1)
    if not raw:
        return None
    number = int(raw)
    return number if number > 0 else None


def _role_list(match: re.Match, _text: str) -> Optional[List[str]]:
    raw = _group(match, 1)
    if not raw:
        return None
    return split_list(raw, max_item_len=20) or None


def _named_certifications(match: re.Match, text: str) -> Optional[List[str]]:
    found: List[str] = []
    for cert in match.re.findall(text):
        cert = cert.strip()
        if cert and cert not in found:
            found.append(cert)
    return found or None


def _certification_list(match: re.Match, _text: str) -> Optional[List[str]]:
    raw = _group(match, 1)
    if not raw:
        return None
    raw = raw.strip()
    if len(raw) > 20:
        return split_list(raw) or None
    return [raw]


def _exclusion_rules(match: re.Match, _text: str) -> Optional[List[str]]:
    raw = _group(match, 1)
    if not raw:
        return None
    raw = raw.strip()
    rules = [s.strip() for s in re.split(r"[,;，；]", raw) if len(s.strip()) > 2]
    return rules or [raw]


def _flag_present(match: re.Match, _text: str) -> Optional[bool]:
    return True if _group(match, 1) else None


def _target_types(match: re.Match, _text: str) -> Optional[List[str]]:
    raw = _group(match, 1)
    if not raw:
        return None
    types = []
    if re.search(r"중소기업|기업|벤처|스타트업|창업", raw):
        types.append("COMPANY")
    if re.search(r"연구기관|연구소|출연연", raw):
        types.append("RESEARCH_INSTITUTE")
    if re.search(r"대학|대학교", raw):
        types.append("UNIVERSITY")
    if re.search(r"공공기관|지자체", raw):
        types.append("PUBLIC_INSTITUTION")
    return types or None


def _first_item(match: re.Match, _text: str) -> Optional[str]:
    raw = _group(match, 1)
    if not raw:
        return None
    first = re.split(r"[,;，；]", raw.strip())[0].strip()
    return first or None


_DEADLINE_LABELS = r"(?:마감일|신청마감일|지원마감일|모집마감일|접수마감일|신청기한|접수기한|제출마감)"
_START_LABELS = r"(?:접수일|신청일|모집일|접수시작일|신청시작일|접수개시일)"
_ISO_DATE = r"(\d{4}[.-]\d{1,2}[.-]\d{1,2})"
_KOREAN_DATE = r"(\d{4}년\s*\d{1,2}월\s*\d{1,2}일)"
_UNIT_AMOUNT = r"([\d,\.]+)\s*(억|백만|천만|만)원"


def build_default_rules() -> PatternRuleList:
    """기본 Tier 1 규칙 목록 (등록 순서 = 우선순위)"""
    H, M = Confidence.HIGH, Confidence.MEDIUM
    return PatternRuleList([
        # ---------------------------------------------------------------- A
        PatternRule(
            F.DEADLINE,
            _compile(_DEADLINE_LABELS + r"\s*[:：]\s*" + _ISO_DATE,
                     _DEADLINE_LABELS + r"\s*[:：]\s*" + _KOREAN_DATE),
            _date_value, H, "마감일 동의어 매칭 (마감일, 신청기한 등)",
        ),
        PatternRule(
            F.PUBLISHED_AT,
            _compile(r"공고일\s*[:：]\s*" + _ISO_DATE,
                     r"공고일\s*[:：]\s*" + _KOREAN_DATE),
            _past_date_value, H, "공고일",
        ),
        PatternRule(
            F.APPLICATION_START,
            _compile(_START_LABELS + r"\s*[:：]\s*" + _ISO_DATE,
                     _START_LABELS + r"\s*[:：]\s*" + _KOREAN_DATE),
            _date_value, H, "접수 시작일 (접수일, 신청시작일 등)",
        ),
        PatternRule(
            F.DEADLINE_TIME_RULE,
            _compile(r"(\d{1,2}[:시]\s*\d{0,2})\s*까지\s*(?:접수|제출|마감)",
                     r"(?:접수|제출)\s*마감\s*[:：]?\s*(\d{1,2}[:시]\s*\d{0,2})\s*까지",
                     r"(?:마감\s*시간|접수\s*시간)\s*[:：]\s*(.{3,30})"),
            _stripped, M, "마감 시간 규칙 (18:00까지 등)",
        ),
        PatternRule(
            F.SUBMISSION_SYSTEM,
            _compile(r"(?:접수\s*(?:시스템|방법|처)|제출\s*(?:시스템|방법|처))\s*[:：]\s*(.{3,60})",
                     r"(IRIS|범부처통합혁신사업관리시스템|이지비즈|K-Startup|RCMS|e-R&D|한국연구재단\s*시스템|ERND)"),
            _stripped, M, "접수 시스템 (IRIS, 이지비즈 등)",
        ),
        PatternRule(
            F.CONTACT_INFO,
            _compile(r"문의처\s*[:：]\s*(.{5,100})",
                     r"담당\s*(?:부서|자)\s*[:：]\s*(.{5,100})",
                     r"(?:전화|연락처|문의)\s*[:：]?\s*((?:\d{2,4}[-.\s]?\d{3,4}[-.\s]?\d{4}).*)"),
            _contact_value, M, "문의처 (문의처, 담당부서, 전화번호)",
        ),
        # ---------------------------------------------------------------- B
        PatternRule(
            F.BUDGET_AMOUNT,
            _compile(r"(?:공고금액|지원규모|지원예산|지원금액|연구비|총사업비)\s*[:：]\s*(?:총\s*)?" + _UNIT_AMOUNT,
                     r"금\s*액\s*[:：]\s*([\d,]+)원"),
            _budget_amount, H, "사업 예산 (공고금액, 지원규모 등)",
        ),
        PatternRule(
            F.BUDGET_PER_PROJECT,
            _compile(r"과제당\s*(?:연간\s*)?" + _UNIT_AMOUNT,
                     r"최대\s*" + _UNIT_AMOUNT),
            _budget_with_unit, M, "과제당 지원금 (과제당, 최대)",
        ),
        PatternRule(
            F.FUNDING_RATE,
            _compile(r"(?:정부|출연금|지원)\s*(\d{1,3})\s*%\s*[,，]?\s*(?:민간|기업|대응자금)\s*(\d{1,3})\s*%",
                     r"대응자금\s*(\d{1,3})\s*%",
                     r"(?:정부\s*지원\s*(?:금\s*)?비율|출연\s*비율|지원\s*비율)\s*[:：]?\s*(\d{1,3})\s*%"),
            _funding_rate, M, "정부/민간 분담비율",
        ),
        PatternRule(
            F.FUNDING_PERIOD,
            _compile(r"(?:연구기간|사업기간|지원기간|수행기간|과제기간)\s*[:：]\s*(\d+\s*(?:년|개월|월))",
                     r"(?:최대|최장)\s*(\d+\s*(?:년|개월|월))",
                     r"(\d+)\s*(?:년|개월)\s*[~～\-]\s*(\d+)\s*(년|개월)"),
            _funding_period, M, "연구/사업 기간",
        ),
        PatternRule(
            F.NUM_AWARDS,
            _compile(r"(\d+)\s*개\s*(?:과제|내외|선정|팀)",
                     r"(?:선정\s*규모|과제\s*수|선정\s*건수)\s*[:：]\s*(\d+)"),
            _positive_int, M, "선정 규모 (과제 수)",
        ),
        # ---------------------------------------------------------------- C
        PatternRule(
            F.LEAD_ROLE_ALLOWED,
            _compile(r"주관\s*기관\s*[:：]\s*(.{3,80})",
                     r"주관\s*(?:연구)?기관\s*(?:은|는)\s*(.{3,60})"),
            _role_list, M, "주관기관 자격",
        ),
        PatternRule(
            F.CO_ROLE_ALLOWED,
            _compile(r"(?:참여기관|공동연구기관|협동연구기관)\s*[:：]\s*(.{3,80})",
                     r"공동\s*연구\s*[:：]?\s*(.{3,60})"),
            _role_list, M, "참여/공동연구기관 자격",
        ),
        PatternRule(
            F.REQUIRED_CERTIFICATIONS,
            _compile(r"(INNO-BIZ|이노비즈|벤처기업|메인비즈|Main-Biz|경영혁신형기업)"),
            _named_certifications, M, "필요 인증 (INNO-BIZ, 벤처기업 등)",
        ),
        PatternRule(
            F.REQUIRED_CERTIFICATIONS,
            _compile(r"(?:필요\s*인증|요구\s*인증|자격\s*요건)\s*[:：]\s*(.{3,100})"),
            _certification_list, M, "필요 인증 (필요인증 항목)",
        ),
        PatternRule(
            F.EXCLUSION_RULES,
            _compile(r"(?:제외\s*대상|신청\s*제외|참여\s*제한|지원\s*제외)\s*[:：]\s*(.{10,200})",
                     r"((?:\d+년\s*이내\s*(?:부정행위|부정당\s*업자|참여\s*제한))[^.。\n]{0,80})",
                     r"(휴[·/]?폐업\s*기업[^.。\n]{0,30})"),
            _exclusion_rules, M, "참여 제한 사유 (제외대상, 참여제한)",
        ),
        PatternRule(
            F.REQUIRES_RESEARCH_INSTITUTE,
            _compile(r"(컨소시엄\s*(?:필수|구성\s*필수|의무))",
                     r"(산학연\s*(?:협력|컨소시엄)\s*(?:필수|의무))"),
            _flag_present, M, "컨소시엄/산학연 필수 여부",
        ),
        PatternRule(
            F.TARGET_TYPE,
            _compile(r"(?:지원대상|신청자격|참여자격)\s*[:：]\s*(.{5,200})"),
            _target_types, M, "지원대상 조직유형",
        ),
        # ---------------------------------------------------------------- D
        PatternRule(
            F.PRIMARY_TARGET_INDUSTRY,
            _compile(r"(?:기술\s*분야|연구\s*분야|사업\s*분야|지원\s*분야)\s*[:：]\s*(.{2,40})"),
            _first_item, M, "주요 대상 산업 (분야 항목)",
        ),
    ])


def kind_post_process(field: AnnouncementField) -> PostProcess:
    """큐레이션 패턴용 후처리: 첫 캡처 그룹(없으면 전체 매치)을 필드 종류로 정규화"""

    def _post_process(match: re.Match, _text: str) -> Any:
        raw = _group(match, 1) if match.re.groups else match.group(0)
        if raw is None:
            return None
        if FIELD_KINDS[field] == "boolean":
            return True
        return coerce_value(field, raw.strip())

    return _post_process


TIER1_PATTERNS = build_default_rules()
