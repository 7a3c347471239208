"""Prompt text for the composite and animation requests."""

MOTION_FALLBACK = "Keep the original background atmosphere and lighting."

MOTION_DIRECTIVE = (
    "Create a 'Live Photo' style video (approx 3 seconds). Subtle, natural motion. "
    "Breathing, slight wind, or background movement."
)

_COMPOSITE_TEMPLATE = """You are an AI image compositor working as a precise inpainter.

GOAL: Replace ONLY the clothing region of Image 2 with the garment from Image 1.

Everything outside the clothing area of Image 2 is a locked layer. Do not generate
new pixels for the face, hair, hands or background; pass the original details through.

1. HAIR
   - Keep texture, volume, silhouette and every flyaway strand exactly as in Image 2.
   - The clothes go UNDER the hair. Hair falling over the chest stays on top.

2. POSE & BODY
   - Do not move the shoulders, neck or head.
   - Hands, fingers and facial expression must be identical to Image 2.

3. CLOTHING
   - Find the clothing mask on the person in Image 2.
   - Generate the item from Image 1 only within that mask, adjusted for its shape.
   - Folds and wrinkles must follow the person's original pose.

{scene_block}

SUMMARY: Image 2 is the truth. Only the fabric of the outfit changes."""

_SCENE_REPLACEMENT = """4. SCENE REPLACEMENT
   - Replace the background completely with this scene: "{scene}".
   - Adjust the lighting on the person and the garment to match it naturally.
   - Do not alter facial structure or skin tone because of the new lighting."""

_SCENE_PRESERVATION = """4. SCENE PRESERVATION
   - The background must stay pixel-identical to Image 2. No blur, shift or relight.
   - Shadows and highlights on the face and background stay where they are."""


def build_composite_prompt(scene_description: str) -> str:
    scene = (scene_description or "").strip()
    if scene:
        scene_block = _SCENE_REPLACEMENT.format(scene=scene)
    else:
        scene_block = _SCENE_PRESERVATION
    return _COMPOSITE_TEMPLATE.format(scene_block=scene_block)


def build_motion_prompt(scene_description: str) -> str:
    """Live-photo directive plus the scene, or the keep-atmosphere fallback."""
    scene = (scene_description or "").strip()
    return f"{MOTION_DIRECTIVE} {scene or MOTION_FALLBACK}"
