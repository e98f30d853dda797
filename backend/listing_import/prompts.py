"""
Prompts for the model-backed features.

Photo selection sees only harvested URLs, never the page itself, so prompt
size stays bounded by the candidate count.
"""

from typing import List, Optional

PHOTO_SELECTION_PROMPT = """You are analyzing a {site_name} listing page. I have extracted {count} image URLs from the HTML.

Your task: Identify which URLs are the actual product/item listing photos (NOT profile pictures, ads, recommended items, or UI elements).

CONTEXT: A marketplace listing usually has 3-8 main product photos showing the item from different angles.

IMAGE URLS:
{url_list}

ANALYSIS CRITERIA:
{site_hints}
- Group similar URLs (same base image in different sizes) and pick the highest quality

RESPONSE FORMAT:
Return ONLY a JSON array of the URLs that are actual listing photos, ordered by importance:
["url1", "url2", "url3", ...]

Limit to maximum {max_photos} URLs. If unsure, err on the side of caution and return fewer URLs rather than including non-listing images."""


PHOTO_ANALYSIS_PROMPT = """Analyze this image of an item for sale and extract the following information:

1. Category: the kind of item (for example ATV, Snowmobile, Trailer, Small Engine)
2. Manufacturer: Identify the brand/manufacturer if visible
3. Model: Identify the specific model if visible
4. Condition: Rate the condition from 1-10 based on visible wear, damage, and overall appearance
5. Description: Provide a detailed description including any notable features, damage, or modifications

Please respond in valid JSON format with the following structure:
{
  "category": "string",
  "manufacturer": "string or 'Unknown'",
  "model": "string or 'Unknown'",
  "condition": number (1-10),
  "description": "detailed description",
  "confidence": number (0-100),
  "suggestions": ["array of helpful suggestions for the listing"]
}

Be conservative with confidence scores and indicate when information is uncertain."""


DESCRIPTION_PROMPT = """Create an engaging and detailed description for a {category} listing:

Details:
- Manufacturer: {manufacturer}
- Model: {model}
- Condition: {condition}/10
{details_line}
Write a professional marketplace description that:
1. Highlights key features and benefits
2. Mentions the condition appropriately
3. Uses compelling language to attract buyers
4. Includes relevant keywords for searchability
5. Is 100-200 words long

Write in a friendly but professional tone suitable for online marketplaces."""


PRICING_PROMPT = """Provide pricing suggestions for this {category}:
- Manufacturer: {manufacturer}
- Model: {model}
{extra_lines}
Based on typical market values, provide:
1. A suggested listing price
2. A realistic price range (min/max)
3. Market insights and pricing tips

Respond in JSON format:
{{
  "suggestedPrice": number,
  "priceRange": {{ "min": number, "max": number }},
  "marketInsights": ["array of helpful insights"]
}}

Consider factors like depreciation, condition, market demand, and seasonal variations."""


def build_photo_selection_prompt(site_name: str, urls: List[str], site_hints: str, max_photos: int = 6) -> str:
    url_list = "\n".join(f"{i + 1}. {url}" for i, url in enumerate(urls))
    return PHOTO_SELECTION_PROMPT.format(
        site_name=site_name,
        count=len(urls),
        url_list=url_list,
        site_hints=site_hints or "- Prefer the largest rendition of each photo",
        max_photos=max_photos,
    )


def build_description_prompt(category: str, manufacturer: str, model: str, condition: int,
                             details: Optional[str] = None) -> str:
    return DESCRIPTION_PROMPT.format(
        category=category,
        manufacturer=manufacturer,
        model=model,
        condition=condition,
        details_line=f"- Additional Details: {details}\n" if details else "",
    )


def build_pricing_prompt(category: str, manufacturer: str, model: str,
                         year: Optional[int] = None, condition: Optional[int] = None) -> str:
    lines = []
    if year:
        lines.append(f"- Year: {year}")
    if condition:
        lines.append(f"- Condition: {condition}/10")
    return PRICING_PROMPT.format(
        category=category,
        manufacturer=manufacturer,
        model=model,
        extra_lines="".join(line + "\n" for line in lines),
    )
