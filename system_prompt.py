DEFAULT_MOCKUP_PROMPT = "a white t-shirt on a hanger"

DEFAULT_EDIT_PROMPT = "Place the logo on the center of the t-shirt"

PROMPT_SUGGESTIONS = [
    "a white t-shirt on a hanger",
    "a black coffee mug on a wooden table",
    "a canvas tote bag with neutral colors",
    "a stainless steel water bottle",
    "a baseball cap on a clean background",
    "a dark grey hoodie folded neatly",
    "a simple smartphone case",
    "a spiral notebook with a pen beside it",
]

PRODUCT_IMAGE_PROMPT = """\
A professional, high-resolution product photograph of {product}.
Studio lighting, clean and uncluttered background, the product centered and fully in frame.
The surface of the product facing the camera must be plain and free of any existing logos, text, labels, or graphics, so a brand logo can be placed on it later.
Photorealistic, sharp focus, commercial e-commerce style.
"""

LOGO_EDIT_PROMPT = """\
The first image is a product mockup photograph. The second image is a brand logo.
Apply the logo to the product in the first image following this instruction:

{instruction}

RULES:
- Keep everything else in the product photo identical: background, lighting, shadows, perspective, camera angle.
- Render the logo so it follows the material, curvature, and lighting of the product surface, as if it were printed or embroidered on it.
- Remove any solid background around the logo before applying it.
- Output the edited photograph only. No captions, no borders, no watermarks.
"""
