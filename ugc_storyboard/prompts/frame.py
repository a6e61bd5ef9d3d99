"""Frame image generation prompts"""

# The resolution directive opens and closes the prompt; image models follow
# the ratio more reliably when it is repeated.
FRAME_PROMPT_TEMPLATE = """ULTRA-CRITICAL COMMAND: The final image output dimensions MUST be exactly {resolution} pixels ({ratio} aspect ratio). {orientation} This is the most important rule.{reference_ratio_note}
{consistency_rules}
**Creative Brief:**
-   **Style:** Photorealistic, UGC-style, natural lighting, high-detail. {style_concept}
-   **Audience:** {target_audience}
-   **Scene:** {scene_description}
-   **Camera Angle:** {camera_angle}

FINAL CHECK AND COMMAND: Before generating, confirm the output will be exactly {resolution} pixels ({ratio}). This rule is absolute and overrides all other instructions.
"""

REFERENCE_RATIO_NOTE = " IGNORE the aspect ratio of any user-provided images."

CONSISTENCY_RULES = """
**Asset Consistency Rules (Non-Negotiable):**
1.  **Model & Outfit:** Replicate the provided model's face, hair, and entire OUTFIT with 100% photorealistic accuracy. Do not change the clothing.
2.  **Product:** Replicate the provided product's appearance, shape, and labeling with 100% accuracy. Do not alter the product.
"""

CHAINED_FRAME_NOTE = """3.  **Continuity:** The last reference image is the previous storyboard frame. Keep lighting, location, and styling continuous with it.
"""


def get_frame_prompt(frame, request, has_reference_images: bool = False, chained: bool = False) -> str:
    """
    Build the image generation prompt for one planned frame.

    Args:
        frame: FramePlan or StoryboardFrame with scene_description and camera_angle
        request: Originating GenerationRequest (style, audience, aspect ratio)
        has_reference_images: Whether reference images are attached to the call
        chained: Whether the previous frame is attached as the last reference

    Returns:
        Formatted prompt string
    """
    aspect = request.aspect

    consistency_rules = ""
    if has_reference_images:
        consistency_rules = CONSISTENCY_RULES
        if chained:
            consistency_rules += CHAINED_FRAME_NOTE

    return FRAME_PROMPT_TEMPLATE.format(
        resolution=aspect.resolution,
        ratio=aspect.ratio,
        orientation=aspect.description,
        reference_ratio_note=REFERENCE_RATIO_NOTE if has_reference_images else "",
        consistency_rules=consistency_rules,
        style_concept=request.style_concept,
        target_audience=request.target_audience or "general audience",
        scene_description=frame.scene_description,
        camera_angle=frame.camera_angle
    )
