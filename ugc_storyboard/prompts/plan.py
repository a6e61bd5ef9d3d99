"""Plan generation prompts for the UGC ad director"""

from ..core.config import CAMERA_ANGLES, OUTPUT_LANGUAGE, PRODUCT_ONLY_MIN_FRAMES

PLAN_PROMPT_TEMPLATE = """**PERSONA:** Act as an expert "UGC Ad Director". Your goal is to create a logical, persuasive, and visually compelling storyboard that is ready for production. Your logic must be flawless.

**PROJECT BRIEF:**
- Product URL: {product_url} (Analyze this for benefits, features, and reviews)
- Target Audience: {target_audience}
- Style/Concept: {style_concept}
- Total Frames: {frame_count}
{music_brief}
**USER ASSETS FOR CONSISTENCY:**
{asset_notes}

**CORE LOGIC & RULES (MANDATORY):**
1.  **Deep Analysis:** Analyze the product URL to extract key selling points. The script must be based on real benefits and user pain points.
2.  **Storyselling Structure:** The script must flow naturally: Problem/Hook -> Introduce Product as Solution -> Show Benefit/Result -> Clear Call to Action (CTA).
3.  **Strategic Scene Composition (CRITICAL):**
{composition_rules}
4.  **Language:** All text output must be in {language}.

**OUTPUT FORMAT (Strict JSON):**
-   "hook": An irresistible 8-second hook that identifies a relatable problem or sparks curiosity.
-   "fullScript": The complete video narration, from hook to CTA, written in a conversational, non-rigid tone.
-   "frames": An array of exactly {frame_count} frame objects:
    -   "sceneDescription": A highly detailed visual description for the image AI. Mention pose, expression, background, lighting, and product placement. Adhere to the Strategic Scene Composition rules.
    -   "cameraAngle": Choose **ONE** effective angle from: {camera_angles}.
    -   "script": A short voice-over line for this specific scene.
    -   "productOnly": true only for the product-only shot, false otherwise.
{music_output}
**FINAL CHECK:** Before outputting the JSON, review your plan. Does it follow every rule? Is there a dedicated product shot? Is the model always interacting with the product in other scenes? Is the narrative persuasive? Fix any deviations. Your output must be perfect.
"""

PRODUCT_ONLY_RULE = """    -   For any storyboard with {min_frames} or more frames, it is **MANDATORY** to include **EXACTLY ONE** "Product-Only Shot". Describe this scene clearly (e.g., "Aesthetic close-up of the product on a clean vanity table with soft morning light."). This is a non-negotiable rule."""

INTERACTION_RULE = """    -   For **ALL** other frames that include the model, the `sceneDescription` **MUST** describe the model actively and logically interacting with the product (e.g., "Model smiling while spraying the perfume on her wrist," not "Model standing in a room."). This is a non-negotiable rule."""

JSON_ONLY_INSTRUCTION = """
**RESPONSE RULES:** Respond with a single JSON object only. Do not add prose, explanations, or markdown code fences."""

RULE_VIOLATION_FEEDBACK = """
**PREVIOUS ATTEMPT REJECTED:** {reason} Produce a new plan that satisfies every rule above."""

COMBINED_ASSET_NOTE = "- User provided a single image of the model holding the product. Maintain model, outfit, and product consistency."
MODEL_ASSET_NOTE = "- User provided a model image. Maintain this model's face, hair, and OUTFIT."
PRODUCT_ASSET_NOTE = "- User provided a product image. This product's appearance is NON-NEGOTIABLE."
NO_ASSET_NOTE = "- No reference images provided. Describe the model and product in enough detail to keep them consistent across frames."


def get_asset_notes(request) -> str:
    """Describe which reference images the user supplied"""
    notes = []
    if request.upload_mode == "combined" and request.combined_image:
        notes.append(COMBINED_ASSET_NOTE)
    if request.upload_mode == "separate" and request.model_image:
        notes.append(MODEL_ASSET_NOTE)
    if request.upload_mode == "separate" and request.product_image:
        notes.append(PRODUCT_ASSET_NOTE)
    return "\n".join(notes) if notes else NO_ASSET_NOTE


def get_plan_prompt(request, json_only: bool = False, rejection_reason: str = None) -> str:
    """
    Build the plan generation prompt from a GenerationRequest.

    Args:
        request: GenerationRequest with all brief fields
        json_only: Append an explicit JSON-only instruction for endpoints
                   without native schema enforcement
        rejection_reason: Feedback from a rejected previous attempt

    Returns:
        Formatted prompt string
    """
    composition_rules = []
    if request.frame_count >= PRODUCT_ONLY_MIN_FRAMES:
        composition_rules.append(PRODUCT_ONLY_RULE.format(min_frames=PRODUCT_ONLY_MIN_FRAMES))
    composition_rules.append(INTERACTION_RULE)

    music_brief = f"- Background Music Mood: {request.music_style}\n" if request.include_music else ""
    music_output = (
        '-   "musicPrompt": A detailed prompt for a music AI (like Suno) based on the mood.\n'
        if request.include_music else ""
    )

    prompt = PLAN_PROMPT_TEMPLATE.format(
        product_url=request.product_url or "(not provided)",
        target_audience=request.target_audience or "(not provided)",
        style_concept=request.style_concept or "(not provided)",
        frame_count=request.frame_count,
        music_brief=music_brief,
        asset_notes=get_asset_notes(request),
        composition_rules="\n".join(composition_rules),
        language=OUTPUT_LANGUAGE,
        camera_angles=", ".join(CAMERA_ANGLES),
        music_output=music_output
    )

    if json_only:
        prompt += JSON_ONLY_INSTRUCTION
    if rejection_reason:
        prompt += RULE_VIOLATION_FEEDBACK.format(reason=rejection_reason)

    return prompt
