"""
Tech-stack keyword extraction.

A portfolio's tech stack is stored as one comma-separated string
("python, fastapi,postgresql"). Every place that feeds the index (startup
rebuild, create, update, delete) goes through `extract_keywords` so the
tokens removed on delete are exactly the tokens inserted on create.
"""

from typing import List, Optional

KEYWORD_DELIMITER = ","


def extract_keywords(tech_stack: Optional[str], lowercase: bool = False) -> List[str]:
    """
    Split a tech-stack field into distinct keywords.

    - None → [] (a portfolio without a tech stack has no keywords)
    - tokens are stripped of surrounding whitespace; empty tokens are dropped
    - repeated tokens are kept once, in first-occurrence order
    - case is preserved unless `lowercase` is set

    Examples:
        extract_keywords("java, spring,,java")  → ["java", "spring"]
        extract_keywords("Go,gRPC", lowercase=True) → ["go", "grpc"]
    """
    if tech_stack is None:
        return []

    keywords: List[str] = []
    seen = set()
    for raw in tech_stack.split(KEYWORD_DELIMITER):
        keyword = raw.strip()
        if lowercase:
            keyword = keyword.lower()
        if not keyword or keyword in seen:
            continue
        seen.add(keyword)
        keywords.append(keyword)
    return keywords
