"""Built-in interview definitions for characters, locations and scenes."""

from __future__ import annotations

from ..contracts import EntityKind
from .models import FieldSpec, OrderedQuestion, SkipRule, WorkflowDefinition

_ROLE_CHOICES = {
    "lead": ["lead", "protagonist", "main character", "hero", "heroine", "antagonist", "villain"],
    "supporting": ["supporting", "secondary", "sidekick", "mentor"],
    "minor": ["minor", "background", "cameo", "bit part"],
}

_SETTING_CHOICES = {
    "INT/EXT": ["int/ext", "int./ext.", "interior/exterior"],
    "INT": ["int", "int.", "interior", "inside", "indoor"],
    "EXT": ["ext", "ext.", "exterior", "outside", "outdoor"],
}

_IMPORTANCE_CHOICES = {
    "major": ["major", "major plot point", "key scene", "crucial"],
    "turning_point": ["turning point", "turning-point", "midpoint", "climax"],
    "minor": ["minor", "small", "transitional", "filler"],
}


CHARACTER_WORKFLOW = WorkflowDefinition(
    id="character-interview",
    entity_kind=EntityKind.CHARACTER,
    output_schema=[
        FieldSpec(name="name", aliases=["character", "character name"]),
        FieldSpec(name="age_range", label="Age", required=False, aliases=["age range", "rough age"]),
        FieldSpec(
            name="role",
            kind="choice",
            choices=_ROLE_CHOICES,
            aliases=["type", "story role", "role in story"],
        ),
        FieldSpec(
            name="appearance",
            aliases=["physical appearance", "physical introduction", "look", "description"],
        ),
        FieldSpec(
            name="personality",
            aliases=["core trait", "personality essence", "behavior", "trait"],
        ),
        FieldSpec(name="goal", aliases=["goals", "want", "wants", "motivation"]),
        FieldSpec(name="flaw", aliases=["flaws", "internal conflict", "weakness"]),
        FieldSpec(name="background", aliases=["backstory", "background context", "history"]),
        FieldSpec(
            name="relationships",
            required=False,
            aliases=["relationships dynamics", "key relationships", "relationship"],
        ),
    ],
    questions=[
        OrderedQuestion(
            index=0,
            prompt="What's your character's name and rough age?",
            target_field="name",
            placeholder="e.g., Sarah, mid-30s",
        ),
        OrderedQuestion(
            index=1,
            prompt="What role do they play in the story - protagonist, antagonist, or supporting character?",
            target_field="role",
            placeholder="e.g., Protagonist - the detective solving the case",
        ),
        OrderedQuestion(
            index=2,
            prompt="Can you describe their physical appearance in 2-3 sentences? What's one memorable detail about them?",
            target_field="appearance",
            placeholder="e.g., Tall, wears a faded leather jacket, has a scar on her cheek",
        ),
        OrderedQuestion(
            index=3,
            prompt="What's their core personality trait or behavioral pattern? Show me through action, not adjectives.",
            target_field="personality",
            placeholder="e.g., Always checks exits when entering a room",
        ),
        OrderedQuestion(
            index=4,
            prompt="What do they want? What's driving them?",
            target_field="goal",
            placeholder="e.g., To find her missing sister and bring her home",
        ),
        OrderedQuestion(
            index=5,
            prompt="What's their biggest flaw or internal conflict?",
            target_field="flaw",
            placeholder="e.g., Trusts no one, pushes people away",
        ),
        OrderedQuestion(
            index=6,
            prompt="Is there any background that's crucial to their story?",
            target_field="background",
            placeholder="e.g., Former FBI agent, left after a case went wrong",
        ),
        OrderedQuestion(
            index=7,
            prompt="How do they interact with other characters? Any key relationships?",
            target_field="relationships",
            required=False,
            placeholder="e.g., Protective of her partner, distant with family",
            skip_if=SkipRule(field="role", equals="minor"),
        ),
    ],
    profile_prompt=(
        "You are a screenplay character creation assistant. The user has finished an "
        "interview about a new character; use their answers from the conversation to "
        "write the character profile. Do not ask questions.\n\n"
        "Answer with exactly these labelled sections:\n"
        "**Name:** the character's full name\n"
        "**Type:** lead | supporting | minor\n"
        "**Description:** a 2-3 sentence physical introduction in screenplay style "
        "(active voice, what the camera sees) followed by their personality essence\n"
        "**Arc Notes:** starting point, internal conflict, goals and key relationships "
        "in 2-4 sentences"
    ),
    profile_schema=[
        FieldSpec(name="name"),
        FieldSpec(name="type", kind="choice", choices=_ROLE_CHOICES),
        FieldSpec(name="description", aliases=["physical introduction"]),
        FieldSpec(name="arc_notes", aliases=["character arc", "arc potential"]),
    ],
)


LOCATION_WORKFLOW = WorkflowDefinition(
    id="location-interview",
    entity_kind=EntityKind.LOCATION,
    output_schema=[
        FieldSpec(name="name", aliases=["location", "location name"]),
        FieldSpec(
            name="setting",
            label="INT/EXT",
            kind="choice",
            required=False,
            choices=_SETTING_CHOICES,
            aliases=["type", "interior or exterior"],
        ),
        FieldSpec(name="look", aliases=["the look", "visual description", "description"]),
        FieldSpec(name="atmosphere", aliases=["the feel", "mood", "atmosphere mood"]),
        FieldSpec(name="action_potential", aliases=["action", "features", "obstacles"]),
        FieldSpec(name="time_and_lighting", aliases=["lighting", "time of day", "time"]),
        FieldSpec(name="sounds", required=False, aliases=["sound", "ambient noise", "soundscape"]),
        FieldSpec(name="dramatic_purpose", aliases=["purpose", "story purpose", "importance"]),
        FieldSpec(
            name="production_notes",
            required=False,
            aliases=["set requirements", "production", "practical considerations"],
        ),
    ],
    questions=[
        OrderedQuestion(
            index=0,
            prompt="What's the name of this location? Is it interior (INT) or exterior (EXT)?",
            target_field="name",
            placeholder="e.g., INT. ABANDONED WAREHOUSE or EXT. CITY ROOFTOP",
        ),
        OrderedQuestion(
            index=1,
            prompt="Can you describe what this place looks like? Paint me a visual picture in 2-3 sentences.",
            target_field="look",
            placeholder="e.g., Concrete floors, broken windows, rusted machinery",
        ),
        OrderedQuestion(
            index=2,
            prompt="What's the atmosphere or mood of this space? How should it feel?",
            target_field="atmosphere",
            placeholder="e.g., Tense, claustrophobic, dangerous",
        ),
        OrderedQuestion(
            index=3,
            prompt="What can characters DO in this location? Any unique features or obstacles?",
            target_field="action_potential",
            placeholder="e.g., Hide behind machinery, climb to upper catwalks",
        ),
        OrderedQuestion(
            index=4,
            prompt="What time of day is typical for scenes here? How's the lighting?",
            target_field="time_and_lighting",
            placeholder="e.g., Night, dim light from street lamps through windows",
        ),
        OrderedQuestion(
            index=5,
            prompt="Are there any important sounds or ambient noise?",
            target_field="sounds",
            required=False,
            placeholder="e.g., Dripping water, distant traffic, metal creaking",
        ),
        OrderedQuestion(
            index=6,
            prompt="Why is THIS location important to your story? What purpose does it serve?",
            target_field="dramatic_purpose",
            placeholder="e.g., Final confrontation location, isolated from help",
        ),
        OrderedQuestion(
            index=7,
            prompt="Any production notes - set requirements, practical considerations?",
            target_field="production_notes",
            required=False,
            placeholder="e.g., Needs practical fire effects, sound reverb",
        ),
    ],
    profile_prompt=(
        "You are a screenplay location creation assistant. The user has finished an "
        "interview about a new location; use their answers from the conversation to "
        "write the location profile. Do not ask questions.\n\n"
        "Answer with exactly these labelled sections:\n"
        "**Name:** the location name\n"
        "**Type:** INT | EXT | INT/EXT\n"
        "**Description:** the look, 2-3 vivid sentences in active voice\n"
        "**Atmosphere Notes:** mood, lighting, sound and time of day\n"
        "**Set Requirements:** props, set pieces and what characters can do here\n"
        "**Production Notes:** lighting, acoustics, camera placement and logistics"
    ),
    profile_schema=[
        FieldSpec(name="name"),
        FieldSpec(name="type", kind="choice", choices=_SETTING_CHOICES),
        FieldSpec(name="description", aliases=["the look"]),
        FieldSpec(name="atmosphere_notes", aliases=["the feel"]),
        FieldSpec(name="set_requirements", required=False, aliases=["action potential"]),
        FieldSpec(name="production_notes", required=False),
    ],
)


SCENE_WORKFLOW = WorkflowDefinition(
    id="scene-interview",
    entity_kind=EntityKind.SCENE,
    output_schema=[
        FieldSpec(name="heading", aliases=["scene heading", "slugline", "slug line"]),
        FieldSpec(name="act", kind="integer", aliases=["act number"]),
        FieldSpec(
            name="importance",
            kind="choice",
            choices=_IMPORTANCE_CHOICES,
            aliases=["scene importance", "weight"],
        ),
        FieldSpec(name="action", aliases=["what happens", "basic action", "scene action"]),
        FieldSpec(name="characters", aliases=["who", "cast", "characters and wants"]),
        FieldSpec(name="conflict", aliases=["tension", "main conflict", "obstacle"]),
        FieldSpec(name="emotion", aliases=["emotional arc", "audience emotion", "feeling"]),
        FieldSpec(name="plot_advancement", aliases=["plot", "reveals", "plot advancement"]),
        FieldSpec(name="dialogue", required=False, aliases=["dialogue moments", "lines"]),
        FieldSpec(name="twist", required=False, aliases=["reveal", "surprise", "twist element"]),
    ],
    questions=[
        OrderedQuestion(
            index=0,
            prompt="What's the scene heading? (Example: INT. COFFEE SHOP - DAY or EXT. CITY STREET - NIGHT)",
            target_field="heading",
            placeholder="e.g., INT. POLICE STATION - NIGHT",
        ),
        OrderedQuestion(
            index=1,
            prompt="Which act is this scene in? (Act 1, 2, or 3)",
            target_field="act",
            placeholder="e.g., Act 2",
        ),
        OrderedQuestion(
            index=2,
            prompt="How important is this scene? (Major plot point, minor scene, or turning point)",
            target_field="importance",
            placeholder="e.g., Major plot point - discovery of key evidence",
        ),
        OrderedQuestion(
            index=3,
            prompt="What HAPPENS in this scene? Give me the basic action in 2-3 sentences.",
            target_field="action",
            placeholder="e.g., Sarah discovers a photo that links her sister to the case",
        ),
        OrderedQuestion(
            index=4,
            prompt="Who's in the scene? What do they want?",
            target_field="characters",
            placeholder="e.g., Sarah wants answers, the captain wants her off the case",
        ),
        OrderedQuestion(
            index=5,
            prompt="What's the main conflict or tension? What's preventing them from getting what they want?",
            target_field="conflict",
            placeholder="e.g., The captain threatens to fire her if she continues",
        ),
        OrderedQuestion(
            index=6,
            prompt="What emotion should the audience feel? How does the character's emotion change from start to end?",
            target_field="emotion",
            placeholder="e.g., Starts hopeful, ends desperate and determined",
        ),
        OrderedQuestion(
            index=7,
            prompt="Does this scene reveal anything new? How does it move the plot forward?",
            target_field="plot_advancement",
            placeholder="e.g., Reveals her sister was investigating the same case",
        ),
        OrderedQuestion(
            index=8,
            prompt="Any specific dialogue moments you're imagining?",
            target_field="dialogue",
            required=False,
            placeholder="e.g., 'I'm not asking for permission anymore'",
        ),
        OrderedQuestion(
            index=9,
            prompt="Is there any twist, reveal, or surprise element?",
            target_field="twist",
            required=False,
            placeholder="e.g., The captain recognizes the person in the photo",
            skip_if=SkipRule(field="importance", equals="minor"),
        ),
    ],
    profile_prompt=(
        "You are helping the user create a new scene for their screenplay. Use their "
        "interview answers from the conversation to write the scene breakdown. Do not "
        "ask questions.\n\n"
        "Answer with exactly these labelled sections:\n"
        "**Scene Heading:** INT./EXT. LOCATION - TIME\n"
        "**Synopsis:** 2-4 sentences in active, present-tense voice showing what the "
        "camera sees, the conflict and how the scene moves the plot forward"
    ),
    profile_schema=[
        FieldSpec(name="heading", aliases=["scene heading"]),
        FieldSpec(name="synopsis", aliases=["scene description", "what happens"]),
    ],
)


BUILTIN_WORKFLOWS = (CHARACTER_WORKFLOW, LOCATION_WORKFLOW, SCENE_WORKFLOW)
