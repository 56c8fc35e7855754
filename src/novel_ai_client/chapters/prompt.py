"""챕터 요약 프롬프트

4개 섹션 계약: 이야기 끝나는 장면 / 주요 대사 / 과거 줄거리 / 과거 등장인물
"""

from dataclasses import dataclass, field
from typing import List

DATA_PREVIEW_LIMIT = 500

SUMMARY_SECTIONS = ["이야기 끝나는 장면", "주요 대사", "과거 줄거리", "과거 등장인물"]

SYSTEM_MESSAGE = (
    "당신은 소설 작성을 돕는 AI 어시스턴트입니다. 주어진 내용을 바탕으로 명확하고 간결한 줄거리 요약을 "
    "작성해주세요. 특히 등장인물들의 주요 대사들을 자연스럽게 포함하여 작성해야 합니다. 대사는 따옴표로 "
    "표시하여 구분하고, 줄거리 흐름에 자연스럽게 녹아들도록 작성해주세요. 반드시 다음 4개 섹션을 모두 "
    "순서대로 작성해야 합니다: 1. 이야기 끝나는 장면, 2. 주요 대사, 3. 과거 줄거리, 4. 과거 등장인물. "
    "어떤 섹션도 생략하지 마세요."
)


@dataclass
class ChapterMaterial:
    """요약 재료: 챕터 안의 속성 하나와 그 데이터들"""
    chapter_label: str
    attribute: str
    data: List[str] = field(default_factory=list)


def _preview(text: str) -> str:
    if len(text) > DATA_PREVIEW_LIMIT:
        return text[:DATA_PREVIEW_LIMIT] + "..."
    return text


def build_summary_prompt(novel_title: str, chapter_label: str, materials: List[ChapterMaterial],
                         characters: List[str]) -> str:
    """요약 프롬프트 생성

    Args:
        novel_title: 소설 제목
        chapter_label: "챕터 N: 제목"
        materials: 챕터 속성별 데이터
        characters: 소설 전체 등장인물 데이터

    Returns:
        프롬프트 문자열
    """
    blocks = []
    for material in materials:
        lines = "\n".join(f"- {material.attribute}: {_preview(text)}" for text in material.data)
        blocks.append(f"**{material.chapter_label}**\n{lines}")
    content = "\n\n".join(blocks)

    character_lines = "\n".join(f"{i}. {c}" for i, c in enumerate(characters, 1))
    character_section = f"\n\n**과거 등장인물 정보:**\n{character_lines}" if characters else ""
    if characters:
        provided = "\n".join(f"  {i}. {c}" for i, c in enumerate(characters, 1))
        character_hint = f"- 제공된 등장인물 정보:\n{provided}"
    else:
        character_hint = "- 등장인물 정보가 없습니다."

    return f"""다음은 소설 "{novel_title}"의 {chapter_label} 내용입니다. 이를 바탕으로 다음 구조로 작성해주세요:

**챕터 내용:**

{content}{character_section}

위 내용을 바탕으로 다음 4개 섹션으로 구성하여 작성해주세요:

**1. 이야기 끝나는 장면**
- {chapter_label}의 마지막 장면이 어떻게 끝나는지 생생하게 묘사
- 마지막 대화와 상황, 분위기, 인물들의 행동을 구체적으로 서술
- 요약이 아닌 장면 묘사로 작성

**2. 주요 대사**
- 이야기에서 중요한 대사들을 추출하여 나열
- 각 대사를 따옴표("")로 표시하고, 누가 말했는지 간단히 설명

**3. 과거 줄거리**
- {chapter_label}까지의 전체 흐름과 주요 사건들을 시간순으로 서술
- 등장인물들의 주요 대사들을 자연스럽게 포함 (따옴표로 표시)
- 자연스러운 문체로 작성

**4. 과거 등장인물**
- 위에 제공된 과거 등장인물 정보를 바탕으로 등장인물 목록 작성
- 각 등장인물의 특징과 역할을 간단히 설명
{character_hint}

**작성 형식:**
반드시 위 4개 섹션을 모두 순서대로 작성해주세요. 각 섹션은 명확하게 구분되어야 하며, 섹션 제목(예: **1. 이야기 끝나는 장면**)을 반드시 포함해야 합니다. 어떤 섹션도 생략하지 마세요."""
