"""Prompt text and response schemas for page and image alt-text.

These constants are imported by the summarizer, the describer and the
candidate scorer. Kept separate to reduce churn when editing prompts.
"""

# -------------------- page summary --------------------

_PAGE_SYSTEM = """You are an accessibility expert. Your task is to generate concise, descriptive alt-text that would be suitable for a link to a webpage.
The alt-text should:
- Be 50-150 characters long
- Describe the main topic or purpose of the page
- Be clear and informative
- Avoid redundant phrases like "link to" or "page about"
- Focus on what the user would find on the page

You will receive text extracted from the webpage. Generate appropriate alt-text based on the page's main topic and purpose."""

_PAGE_PROMPT = """Generate alt-text for a link to this webpage: {URL}

Here is the extracted text content from the webpage (first {LIMIT} characters):

{TEXT}

Based on this ACTUAL content from the page, generate a concise alt-text summary suitable for accessibility purposes.
IMPORTANT: Your response MUST be based on the actual content above, not on assumptions about what the page might contain.
Return your response as JSON with "altText" and "topic" fields."""

_PAGE_PROMPT_NO_CONTENT = """Generate alt-text for a link to this webpage: {URL}

WARNING: No text content could be extracted from this webpage. The HTML may be empty, inaccessible, or the page may require JavaScript to render content.

Since no content is available, do not invent specifics. Return a JSON response with:
- "altText": A generic description based on the URL domain (e.g., "ABC News website" for abc.net.au)
- "topic": A generic topic based on the domain

Return your response as JSON with "altText" and "topic" fields."""

PAGE_SCHEMA = {
    "name": "alt_text_result",
    "schema": {
        "type": "object",
        "properties": {
            "altText": {
                "type": "string",
                "description": "The alt-text suitable for a link to this page (50-150 characters)",
            },
            "topic": {
                "type": "string",
                "description": "Brief description of the page topic",
            },
        },
        "required": ["altText", "topic"],
    },
}

# -------------------- image description --------------------

_IMAGE_SYSTEM = """You are an accessibility expert specializing in image description. Your task is to generate concise, descriptive alt-text for images that would be suitable for screen readers and accessibility purposes.

The alt-text should:
- Be 50-200 characters long
- Accurately describe the main subject and important details in the image
- Be clear and informative without being overly verbose
- Avoid redundant phrases like "image of" or "picture showing"
- Focus on what a visually impaired user would need to know
- Include context when relevant (e.g., "Chart showing sales data from 2020-2024")

Analyze the provided image carefully and generate appropriate alt-text. Return your response as JSON with "altText" and "description" fields."""

_IMAGE_PROMPT = """Generate alt-text for this image from the webpage: {URL}

Image URL: {IMAGE_URL}
{ALT_LINE}"""

_IMAGE_CONTEXT = """

Page Context:
- Page Topic: {TOPIC}
- Page Alt-Text: {ALT}

Use this page context to better understand the image's role and relevance on the page."""

_IMAGE_TAIL = """

Please analyze the image and provide a JSON response with:
- "altText": A concise alt-text (50-200 characters) that considers the page context
- "description": A more detailed description (optional)"""

IMAGE_SCHEMA = {
    "name": "image_alt_text_result",
    "schema": {
        "type": "object",
        "properties": {
            "altText": {
                "type": "string",
                "description": "The alt-text suitable for this image (50-200 characters)",
            },
            "description": {
                "type": "string",
                "description": "A more detailed description of the image (optional, for context)",
            },
        },
        "required": ["altText"],
    },
}

# -------------------- candidate scoring --------------------

_SCORE_SYSTEM = """You are an image analysis expert. Your task is to score images on a scale of 0-100 for how "interesting" or informative they are.

Consider these factors:
- Visual complexity and content richness (charts, diagrams, photos with detail > simple icons)
- Informative value (does it convey meaningful information vs being purely decorative?)
- Relevance to typical webpage content (main content images > decorative elements)
- Presence of text, data visualizations, or complex scenes
- Overall visual appeal and engagement

Score guidelines:
- 0-20: Simple icons, logos, decorative elements, tracking pixels
- 21-40: Simple graphics, basic illustrations
- 41-60: Standard photos, moderate complexity
- 61-80: Rich content images, charts, diagrams, detailed photos
- 81-100: Highly informative images, complex data visualizations, key content images

Return your response as JSON with a single "score" field (0-100)."""

_SCORE_PROMPT = """Score this image for interestingness:

Image URL: {IMAGE_URL}
{ALT_LINE}
{DIM_LINE}"""

_SCORE_CONTEXT = """

Page Context:
- Page Topic: {TOPIC}
- Page Description: {ALT}

Consider how relevant and informative this image is in the context of this page."""

_SCORE_TAIL = """

Return JSON with "score" field (0-100)."""

SCORE_SCHEMA = {
    "name": "interestingness_score",
    "schema": {
        "type": "object",
        "properties": {
            "score": {
                "type": "number",
                "description": "Interestingness score from 0-100",
                "minimum": 0,
                "maximum": 100,
            },
        },
        "required": ["score"],
    },
}
