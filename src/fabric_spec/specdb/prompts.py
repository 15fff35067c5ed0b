"""Korean instruction prompts sent with the sheet image, one per generation."""

from __future__ import annotations

from ..domain.models import SchemaGeneration
from .constants import MISSING_SENTINEL

_JSON_ONLY = (
    "반드시 JSON 객체로만 응답해주세요. 마크다운 포맷(```json)이나 JSON 외부의 다른 설명은 절대 포함하지 마세요."
)

_DATE_RULE = (
    "날짜가 'NN/NN/NN' 형식이면 앞에서부터 연도/월/일로 해석하고, 연도는 2000년대로 확장하여 "
    "'YYYYMMDD' 형식으로 작성하세요 (예: '24/08/15' -> '20240815')."
)

_FLAT_COMMON = f"""당신은 원단 스펙 시트를 읽는 전문가입니다. 제공된 원단 스펙 시트 이미지를 분석하고, {_JSON_ONLY}

규칙:
1. 모든 값은 문자열로 작성하세요.
2. 이미지에서 찾을 수 없는 값은 null 대신 '{MISSING_SENTINEL}'으로 작성하세요.
3. {_DATE_RULE}
4. 가격(price)은 통화 기호 없이 숫자와 소수점만 작성하세요.
"""

FLAT_PROMPT = _FLAT_COMMON + """
JSON 구조:
{
  "date": "날짜",
  "art_no": "Art No. 또는 TCFNO",
  "mill_name": "제조사명",
  "composition": "혼용률 (예: 'COTTON 100%')",
  "spec": "사양 문자열 (예: 'CM 30/1 ML')",
  "finishing": "후가공",
  "weight": "중량과 단위 (예: '300 g/m²')",
  "width": "폭과 단위 (예: '190 cm')",
  "price": "단가"
}
"""

FLAT_SPLIT_WEIGHT_PROMPT = _FLAT_COMMON + """5. 중량은 숫자 값(weight_value)과 단위(weight_unit)로 나누어 작성하세요 (예: '300', 'g/m²').

JSON 구조:
{
  "date": "날짜",
  "art_no": "Art No. 또는 TCFNO",
  "mill_name": "제조사명",
  "composition": "혼용률 (예: 'COTTON 100%')",
  "spec": "사양 문자열 (예: 'CM 30/1 ML')",
  "finishing": "후가공",
  "weight_value": "중량 숫자 값",
  "weight_unit": "중량 단위",
  "width": "폭과 단위 (예: '190 cm')",
  "price": "단가"
}
"""

STRUCTURED_PROMPT = f"""당신은 매우 지식이 풍부한 원단 전문가입니다. 제공된 원단 스펙 시트 이미지를 분석하고, {_JSON_ONLY}

다음 규칙과 JSON 구조를 엄격히 준수해주세요:

1.  **분석과 설명**: 이미지에서 모든 정보를 추출하세요. 전문 용어(예: 사양, 후가공)에 대해서는 초보자를 가르치는 것처럼 간략한 설명을 제공하세요. 이미지에 있는 정보는 반드시 포함해야 합니다.

2.  **JSON 구조**: 최종 결과물은 아래 구조를 정확히 따라야 합니다. 이미지에 정보가 없는 경우, 해당하는 필드에 `null`이나 빈 배열 `[]`을 사용하세요.
    {{
      "basic_info": {{
        "art_no": "이미지상의 Art No. 또는 TCFNO",
        "fabric_name": "원단의 주된 이름",
        "mill_name": "제조사명, 없으면 'Unknown'으로 표기",
        "fabric_type_explanation": "원단 종류에 대한 간략한 설명 (예: '삼사 후리스, 3중 구조 기모 원단')",
        "date": "이미지에 날짜가 있으면 작성"
      }},
      "yarn_specs": [
        {{
          "spec": "전체 사양 문자열 (예: 'CM 30/1 ML')",
          "details": [
            "첫 번째 부분에 대한 설명 (예: 'CM (Combed Cotton): 빗질하여 불순물을 제거한 면사')",
            "두 번째 부분에 대한 설명 (예: '30/1: 30수 단사, 가늘고 부드러움')"
          ]
        }}
      ],
      "dimensions": {{
        "width": {{ "value": "폭 값과 단위 (예: '190 cm')", "note": "인치 변환 등 추가 정보" }},
        "weight_gsm": {{ "value": "g/m² 단위 중량 (예: '300 g/m²')", "note": "문맥적 설명" }},
        "weight_gy": {{ "value": "g/yd 단위 중량 (예: '521 g/yd')", "note": "추가 정보" }}
      }},
      "shrinkage": {{
        "warp": {{ "value": "경사(세로) 방향 수축률", "note": "예: '세로 방향'" }},
        "weft": {{ "value": "위사(가로) 방향 수축률", "note": "예: '가로 방향'" }},
        "summary": "수축률 특성에 대한 간략한 요약"
      }},
      "dyeing_info": {{
        "color_count": {{ "value": "컬러 수", "note": "예: '염색 컬러 수 1개'" }},
        "roll_count": {{ "value": "롤 수", "note": "예: '롤 수 1개, 시험 염색 가능성'" }}
      }},
      "finishing_processes": [
        {{
          "name": "후가공 명칭 (예: 'Enzyme')",
          "explanation": "해당 공정이 무엇인지에 대한 간략한 설명"
        }}
      ],
      "expert_summary": "원단에 대한 종합적인 요약. 주요 특징, 질감, 촉감, 추천 용도를 설명해야 함."
    }}

3.  **날짜**: {_DATE_RULE}

4.  **언어**: 모든 설명과 노트는 **한국어**로 작성해주세요."""


def prompt_for(generation: SchemaGeneration) -> str:
    if generation is SchemaGeneration.FLAT:
        return FLAT_PROMPT
    if generation is SchemaGeneration.FLAT_SPLIT_WEIGHT:
        return FLAT_SPLIT_WEIGHT_PROMPT
    if generation is SchemaGeneration.STRUCTURED:
        return STRUCTURED_PROMPT
    raise ValueError(f"no prompt for generation {generation!r}")
