"""
Default catalogs for the what-if simulator.

Everything here is read-only reference data. Components receive these
tables as constructor arguments, so tests can pass smaller fixed catalogs.
"""

from typing import Dict, List, Tuple

from .models import BranchType, LogicalRule, RuleConstraints

# =============================================================================
# Parameter normalization
# =============================================================================

GENRE_SYNONYMS: Dict[str, str] = {
    "sf": "sci-fi",
    "science-fiction": "sci-fi",
    "science fiction": "sci-fi",
    "scifi": "sci-fi",
    "fantasy": "fantasy",
    "mystery": "mystery",
    "thriller": "thriller",
    "horror": "horror",
    "romance": "romance",
    "drama": "drama",
    "comedy": "comedy",
    "historical": "historical",
    "slice-of-life": "slice-of-life",
    "adventure": "adventure",
}

TONE_SYNONYMS: Dict[str, str] = {
    "funny": "humorous",
    "scary": "tense",
    "sad": "bleak",
    "happy": "whimsical",
    "serious": "dramatic",
    "light": "whimsical",
    "dark": "bleak",
}

MAX_TRAITS = 3

# =============================================================================
# Logical rules
# =============================================================================

RULE_CATEGORIES = (
    "slot_permutation",
    "constraint_inversion",
    "causal_branch",
    "role_reversal",
    "temporal_displacement",
)

LOGICAL_RULES: Tuple[LogicalRule, ...] = (
    # Slot permutation
    LogicalRule(
        id="slot_perm_agent",
        name="Agent Permutation",
        category="slot_permutation",
        template="What if {alternative_agent} {event} instead of {original_agent}?",
        parameters=("alternative_agent", "event", "original_agent"),
        weight=0.8,
    ),
    LogicalRule(
        id="slot_perm_setting",
        name="Setting Permutation",
        category="slot_permutation",
        template="What if {event} happened in {alternative_setting} instead of {original_setting}?",
        parameters=("event", "alternative_setting", "original_setting"),
        weight=0.7,
    ),
    # Constraint inversion
    LogicalRule(
        id="constraint_public_private",
        name="Public/Private Inversion",
        category="constraint_inversion",
        template="What if {event} happened {privacy_inversion} instead?",
        parameters=("event", "privacy_inversion"),
        weight=0.6,
    ),
    LogicalRule(
        id="constraint_allowed_forbidden",
        name="Permission Inversion",
        category="constraint_inversion",
        template="What if {action} was {permission_inversion} when {event}?",
        parameters=("action", "permission_inversion", "event"),
        weight=0.6,
    ),
    # Causal branch
    LogicalRule(
        id="causal_scientific",
        name="Scientific Consequence",
        category="causal_branch",
        template="What if {event} caused {scientific_consequence}?",
        parameters=("event", "scientific_consequence"),
        weight=0.7,
        constraints=RuleConstraints(genres=("sci-fi", "thriller", "mystery")),
    ),
    LogicalRule(
        id="causal_social",
        name="Social Consequence",
        category="causal_branch",
        template="What if {event} led to {social_consequence}?",
        parameters=("event", "social_consequence"),
        weight=0.8,
    ),
    # Role reversal
    LogicalRule(
        id="role_protagonist_antagonist",
        name="Protagonist/Antagonist Reversal",
        category="role_reversal",
        template="What if {character} became the {opposite_role} in this situation?",
        parameters=("character", "opposite_role"),
        weight=0.9,
    ),
    LogicalRule(
        id="role_leader_follower",
        name="Leadership Reversal",
        category="role_reversal",
        template="What if {character} had to {leadership_action} instead of {current_action}?",
        parameters=("character", "leadership_action", "current_action"),
        weight=0.7,
    ),
    # Temporal displacement
    LogicalRule(
        id="temporal_earlier",
        name="Earlier Timing",
        category="temporal_displacement",
        template="What if {event} happened {earlier_timing}?",
        parameters=("event", "earlier_timing"),
        weight=0.6,
    ),
    LogicalRule(
        id="temporal_era_shift",
        name="Era Transposition",
        category="temporal_displacement",
        template="What if {event} occurred in {different_era}?",
        parameters=("event", "different_era"),
        weight=0.8,
        constraints=RuleConstraints(genres=("historical", "sci-fi", "fantasy")),
    ),
)

# =============================================================================
# Slot values
# =============================================================================

OPPOSITE_VALUES: Dict[str, List[str]] = {
    "brave": ["cowardly", "fearful", "timid"],
    "kind": ["cruel", "harsh", "callous"],
    "curious": ["indifferent", "incurious", "uninterested"],
    "public": ["private", "secret", "hidden"],
    "city": ["the countryside", "the wilderness", "a rural village"],
    "past": ["the future", "the present", "tomorrow"],
    "light": ["darkness", "shadow", "night"],
    "order": ["chaos", "disorder", "anarchy"],
    "village": ["a sprawling city", "a space station", "an empty desert"],
    "forest": ["a crowded market", "an underground bunker", "the open sea"],
    "castle": ["a tiny cottage", "a refugee camp", "a subway tunnel"],
    "school": ["a prison", "a royal court", "a shipwreck"],
}

CONSEQUENCE_CATEGORIES: Dict[str, List[str]] = {
    "general": [
        "everything changed forever",
        "unexpected alliances formed",
        "hidden truths emerged",
        "the balance of power shifted",
        "new possibilities opened",
        "old certainties crumbled",
    ],
    "scientific": [
        "a breakthrough discovery",
        "new technology emerged",
        "the laws of physics changed",
        "evolution accelerated",
        "consciousness expanded",
        "reality became malleable",
    ],
    "social": [
        "society transformed",
        "relationships changed fundamentally",
        "communities formed or disbanded",
        "hierarchies collapsed",
        "new cultures emerged",
        "communication revolutionized",
    ],
    "personal": [
        "an identity crisis",
        "hidden potential awakening",
        "past traumas surfacing",
        "personal growth accelerating",
        "relationships deepening",
        "a life purpose becoming clear",
    ],
    "mystery": [
        "new clues emerged",
        "suspects multiplied",
        "the truth became more elusive",
        "red herrings appeared",
        "the mystery deepened",
        "connections were revealed",
    ],
    "sci-fi": [
        "technology gained consciousness",
        "time paradoxes emerged",
        "alternate realities collided",
        "evolution took an unexpected turn",
        "the simulation glitched",
        "artificial life emerged",
    ],
    "fantasy": [
        "magic became unpredictable",
        "ancient powers awakened",
        "prophecies began fulfilling",
        "mythical creatures appeared",
        "the veil between worlds thinned",
        "forgotten spells activated",
    ],
}

# Last-resort values when no filler rule produced a candidate. Slots missing
# from this table make the whole template instantiation fail.
GENERIC_SLOT_VALUES: Dict[str, List[str]] = {
    "character": ["the protagonist", "the main character"],
    "event": ["something happened", "an event occurred"],
    "setting": ["somewhere", "this place"],
    "trait": ["determined", "conflicted"],
    "emotion": ["uncertain", "curious"],
    "action": ["taking action", "making a choice"],
    "consequence": ["unexpected results", "change"],
    "time": ["at that moment", "eventually"],
    "reason": ["for unknown reasons", "mysteriously"],
}

# =============================================================================
# Branch generation
# =============================================================================

ACTION_WORDS = frozenset({
    "go", "goes", "went", "run", "runs", "ran", "walk", "walks", "walked",
    "fight", "fights", "fought", "speak", "speaks", "spoke", "think", "thinks",
    "decide", "decides", "decided", "choose", "chooses", "chose", "discover",
    "discovers", "discovered", "find", "finds", "found", "open", "opens",
    "opened", "hide", "hides", "hid", "escape", "escapes", "escaped",
})

STOP_WORDS = frozenset({
    "the", "and", "but", "for", "are", "was", "were", "been", "have", "has",
    "had", "this", "that", "with", "from", "into", "they", "them", "their",
    "there", "then", "than", "what", "when", "where", "which", "while", "will",
    "would", "could", "should", "about", "after", "before", "just", "only",
    "over", "some", "very", "your", "you", "she", "his", "her", "him", "its",
    "our", "not", "all", "one", "out", "who", "why", "how", "a", "an", "of",
    "to", "in", "on", "at", "it", "is", "be", "as", "by", "or", "if", "so",
})

LOCATION_WORDS = frozenset({
    "forest", "castle", "city", "village", "house", "room", "ship", "station",
    "school", "library", "tower", "cave", "river", "mountain", "market",
    "street", "garden", "temple", "palace", "harbor", "desert", "island",
    "kitchen", "hallway", "attic", "cellar", "bridge", "road", "office",
})

LOGICAL_BRANCH_TECHNIQUES: Tuple[Tuple[str, str, BranchType], ...] = (
    ("character_reaction", "React with {emotion} to {situation}", BranchType.CHARACTER_DRIVEN),
    ("consequence_exploration", "Explore the {consequence_type} of {action}", BranchType.PROCEDURAL),
    ("conflict_escalation", "Escalate the conflict by {escalation_method}", BranchType.ESCALATION),
    ("information_revelation", "Reveal that {revelation}", BranchType.PLOT_TWIST),
    ("choice_point", "Choose between {option1} and {option2}", BranchType.MORAL_DILEMMA),
)

BRANCH_SLOT_VALUES: Dict[str, List[str]] = {
    "emotion": ["anger", "fear", "joy", "sadness", "surprise", "determination"],
    "consequence_type": ["consequences", "implications", "effects", "outcomes"],
    "escalation_method": ["confrontation", "raising the stakes", "involving others", "taking risks"],
    "revelation": ["a hidden truth", "a secret connection", "a surprising fact", "an unexpected motive"],
    "option1": ["safety", "truth", "loyalty", "duty"],
    "option2": ["freedom", "happiness", "success", "revenge"],
}

# Technique-specific overrides of BRANCH_SLOT_VALUES.
TECHNIQUE_SLOT_VALUES: Dict[str, Dict[str, List[str]]] = {
    "conflict_escalation": {
        "emotion": ["anger", "desperation", "defiance"],
    },
    "choice_point": {
        "emotion": ["doubt", "resolve"],
    },
}

BRANCH_FALLBACKS: Dict[str, str] = {
    "emotion": "conflicted",
    "situation": "the current situation",
    "action": "taking action",
    "choice": "making a decision",
    "consequence": "unexpected results",
    "consequence_type": "consequences",
    "revelation": "a surprising discovery",
    "option1": "one path",
    "option2": "another path",
}

# =============================================================================
# Creative generation
# =============================================================================

CONCEPT_GROUPS: Dict[str, List[str]] = {
    "abstract": [
        "time", "memory", "dreams", "fear", "hope", "love", "betrayal", "sacrifice",
        "freedom", "identity", "truth", "illusion", "power", "wisdom", "chaos", "order",
    ],
    "object": [
        "mirror", "key", "door", "book", "photograph", "letter", "clock", "mask",
        "bridge", "labyrinth", "garden", "storm", "fire", "shadow", "light", "darkness",
    ],
    "technology": [
        "artificial intelligence", "virtual reality", "time machine", "telepathy",
        "genetic engineering", "quantum computing", "neural networks", "holograms",
    ],
    "social": [
        "democracy", "revolution", "tradition", "innovation", "community", "isolation",
        "hierarchy", "equality", "justice", "corruption", "fame", "anonymity",
    ],
    "natural": [
        "gravity", "magnetism", "evolution", "extinction", "metamorphosis", "migration",
        "symbiosis", "adaptation", "mutation", "consciousness", "instinct", "intuition",
    ],
}

CONCEPT_BLEND_TEMPLATES: Tuple[str, ...] = (
    "What if {event} caused {concept1} and {concept2} to merge in ways no one expected?",
    "What if {character} discovered that {concept1} was secretly connected to {concept2}?",
    "What if the intersection of {concept1} and {concept2} held the key to resolving the conflict?",
    "What if {concept1} could only be understood through the lens of {concept2}?",
)

ANTI_TEMPLATES: Tuple[Dict[str, object], ...] = (
    {
        "id": "horror_comedy",
        "genre": "horror",
        "expected_pattern": "terrifying monster threatens protagonist",
        "violation_pattern": "the monster is actually trying to help but is misunderstood",
        "surprise_factor": 0.8,
    },
    {
        "id": "romance_logic",
        "genre": "romance",
        "expected_pattern": "emotional decision based on feelings",
        "violation_pattern": "the relationship is analyzed with pure logic and statistics",
        "surprise_factor": 0.7,
    },
    {
        "id": "mystery_obvious",
        "genre": "mystery",
        "expected_pattern": "clues gradually revealed through investigation",
        "violation_pattern": "the solution is immediately obvious but everyone ignores it",
        "surprise_factor": 0.9,
    },
    {
        "id": "scifi_mundane",
        "genre": "sci-fi",
        "expected_pattern": "advanced technology solves problems",
        "violation_pattern": "a simple everyday object becomes the most important tool",
        "surprise_factor": 0.8,
    },
    {
        "id": "fantasy_modern",
        "genre": "fantasy",
        "expected_pattern": "magic and mythical creatures dominate",
        "violation_pattern": "bureaucracy and paperwork control the magical realm",
        "surprise_factor": 0.9,
    },
)

CHARACTER_CONFLICT_TEMPLATES: Tuple[str, ...] = (
    "What if {character}'s {trait} nature was put to the ultimate test when {event}?",
    "What if {character} had to act completely against their {trait} instincts to succeed?",
    "What if {character} discovered that being {trait} was actually their greatest weakness?",
    "What if {character}'s {trait} trait led them to make the worst possible choice?",
)

WORD_ASSOCIATIONS: Dict[str, List[str]] = {
    "time": ["memory", "future", "past", "eternity", "moment"],
    "fear": ["courage", "darkness", "unknown", "safety", "panic"],
    "love": ["loss", "joy", "sacrifice", "devotion", "heartbreak"],
    "power": ["responsibility", "corruption", "freedom", "control", "weakness"],
    "mystery": ["truth", "secrets", "revelation", "clues", "investigation"],
    "magic": ["reality", "wonder", "danger", "rules", "consequences"],
    "letter": ["a forgotten name", "a broken promise", "a second envelope", "an old debt"],
    "horror": ["silence", "a locked door", "the thing in the walls", "an unanswered call"],
    "fantasy": ["a lost crown", "an oath", "a sleeping dragon", "a map with no edges"],
    "sci-fi": ["a signal", "a cloned memory", "a dead star", "an empty colony"],
}

DEFAULT_ASSOCIATIONS: List[str] = ["change", "discovery", "conflict", "resolution", "transformation"]

CREATIVE_BRANCH_TECHNIQUES: Tuple[Tuple[str, str, BranchType, float], ...] = (
    ("unexpected_twist", "Discover that everything you believed was wrong", BranchType.PLOT_TWIST, 0.9),
    ("perspective_shift", "See the situation from a completely different viewpoint", BranchType.CHARACTER_DRIVEN, 0.7),
    ("genre_blend", "Enter a situation that defies the normal rules of this world", BranchType.PLOT_TWIST, 0.8),
    ("temporal_anomaly", "Experience time in an unexpected way", BranchType.PLOT_TWIST, 0.8),
    ("reality_break", "Question the nature of reality itself", BranchType.MORAL_DILEMMA, 0.9),
)

# =============================================================================
# Ranking
# =============================================================================

RANKING_VOCABULARY: Tuple[str, ...] = (
    "character", "story", "plot", "conflict", "resolution", "mystery", "adventure",
    "love", "fear", "hope", "betrayal", "discovery", "journey", "quest", "magic",
    "technology", "future", "past", "present", "time", "space", "world", "reality",
    "dream", "nightmare", "hero", "villain", "friend", "enemy", "family", "stranger",
    "decision", "choice", "consequence", "change", "growth", "loss", "victory",
    "defeat", "beginning", "end", "middle", "twist", "reveal", "secret", "truth",
    "lie", "deception", "honesty", "courage", "cowardice", "wisdom", "folly",
    "power", "weakness", "strength", "fragility", "light", "darkness", "shadow",
    # narrative nouns produced by the generator catalogs
    "letter", "memory", "identity", "freedom", "justice", "chaos", "order",
    "society", "protagonist", "situation", "unexpected", "hidden", "forbidden",
    "public", "private", "era", "ancient", "wrong", "rules", "perspective",
    "viewpoint", "conflict", "escalate", "safety", "loyalty", "duty", "revenge",
    "alliance", "monster", "clues", "solution", "relationship", "consciousness",
)

UNSAFE_KEYWORDS: Tuple[str, ...] = ("violence", "harm", "hate", "explicit")

# =============================================================================
# Template registry
# =============================================================================

DEFAULT_TEMPLATES: Tuple[Dict[str, object], ...] = (
    # Logical
    {
        "id": "tpl_character_trait_reversal",
        "name": "Character Trait Reversal",
        "category": "logical",
        "template_text": "What if {character} acted completely opposite to their {trait} nature when {event}?",
        "parameters": {"required": ["character", "trait", "event"], "optional": []},
        "constraints": {"required_fields": ["character", "event"]},
        "effectiveness_score": 0.85,
    },
    {
        "id": "tpl_setting_inversion",
        "name": "Setting Inversion",
        "category": "logical",
        "template_text": "What if {event} happened in {opposite_setting} instead of {original_setting}?",
        "parameters": {"required": ["event", "opposite_setting", "original_setting"], "optional": []},
        "constraints": {},
        "effectiveness_score": 0.78,
    },
    {
        "id": "tpl_consequence_escalation",
        "name": "Consequence Escalation",
        "category": "logical",
        "template_text": "What if {event} meant {unexpected_consequence} and nothing could stay the same?",
        "parameters": {"required": ["event", "unexpected_consequence"], "optional": ["scope"]},
        "constraints": {"genres": ["sci-fi", "fantasy", "mystery", "thriller"]},
        "effectiveness_score": 0.82,
    },
    {
        "id": "tpl_role_reversal",
        "name": "Role Reversal",
        "category": "logical",
        "template_text": "What if {character} had to become the {opposite_role} to succeed?",
        "parameters": {"required": ["character", "opposite_role"], "optional": ["motivation"]},
        "constraints": {},
        "effectiveness_score": 0.90,
    },
    {
        "id": "tpl_temporal_displacement",
        "name": "Temporal Displacement",
        "category": "logical",
        "template_text": "What if {event} occurred {time_shift} instead?",
        "parameters": {"required": ["event", "time_shift"], "optional": ["consequences"]},
        "constraints": {"genres": ["historical", "sci-fi", "fantasy"]},
        "effectiveness_score": 0.75,
    },
    # Creative
    {
        "id": "tpl_concept_blending",
        "name": "Concept Blending",
        "category": "creative",
        "template_text": "What if {concept1} and {concept2} merged in ways that {unexpected_result}?",
        "parameters": {"required": ["concept1", "concept2", "unexpected_result"], "optional": ["implications"]},
        "constraints": {},
        "effectiveness_score": 0.73,
    },
    {
        "id": "tpl_genre_violation",
        "name": "Genre Violation",
        "category": "creative",
        "template_text": "What if this {genre} story suddenly became about {different_genre_element}?",
        "parameters": {"required": ["genre", "different_genre_element"], "optional": ["transition_method"]},
        "constraints": {"required_fields": ["genre"]},
        "effectiveness_score": 0.88,
    },
    {
        "id": "tpl_reality_question",
        "name": "Reality Question",
        "category": "creative",
        "template_text": "What if everything the characters believed about {fundamental_assumption} was wrong?",
        "parameters": {"required": ["fundamental_assumption"], "optional": ["truth", "implications"]},
        "constraints": {},
        "effectiveness_score": 0.92,
    },
    {
        "id": "tpl_perspective_paradox",
        "name": "Perspective Paradox",
        "category": "creative",
        "template_text": "What if the story was actually being told by {unexpected_narrator} all along?",
        "parameters": {"required": ["unexpected_narrator"], "optional": ["reason", "revelation_method"]},
        "constraints": {},
        "effectiveness_score": 0.80,
    },
    # Character-driven
    {
        "id": "tpl_internal_conflict",
        "name": "Internal Conflict",
        "category": "character-driven",
        "template_text": "What if {character} discovered that their belief that {core_belief} conflicted with {new_information}?",
        "parameters": {"required": ["character", "core_belief", "new_information"], "optional": ["internal_struggle"]},
        "constraints": {},
        "effectiveness_score": 0.87,
    },
    {
        "id": "tpl_moral_dilemma",
        "name": "Moral Dilemma",
        "category": "character-driven",
        "template_text": "What if {character} had to choose between {value1} and {value2}?",
        "parameters": {"required": ["character", "value1", "value2"], "optional": ["stakes", "consequences"]},
        "constraints": {},
        "effectiveness_score": 0.91,
    },
    {
        "id": "tpl_hidden_connection",
        "name": "Hidden Connection",
        "category": "character-driven",
        "template_text": "What if {character1} discovered they were {relationship} to {character2}?",
        "parameters": {"required": ["character1", "character2", "relationship"], "optional": ["how_revealed", "implications"]},
        "constraints": {},
        "effectiveness_score": 0.84,
    },
    # Thematic
    {
        "id": "tpl_theme_inversion",
        "name": "Theme Inversion",
        "category": "thematic",
        "template_text": "What if the story's message about {theme} was completely reversed?",
        "parameters": {"required": ["theme"], "optional": ["new_message", "how_shown"]},
        "constraints": {},
        "effectiveness_score": 0.76,
    },
    {
        "id": "tpl_symbolic_literalization",
        "name": "Symbolic Literalization",
        "category": "thematic",
        "template_text": "What if the metaphor of {metaphor} became literally true in the story?",
        "parameters": {"required": ["metaphor"], "optional": ["literal_manifestation", "consequences"]},
        "constraints": {"genres": ["fantasy", "sci-fi", "magical-realism"]},
        "effectiveness_score": 0.79,
    },
    # Branch-oriented
    {
        "id": "tpl_investigation_branch",
        "name": "Investigation Branch",
        "category": "procedural",
        "template_text": "Investigate {mystery_element} to uncover {potential_discovery}",
        "parameters": {"required": ["mystery_element", "potential_discovery"], "optional": ["investigation_method", "obstacles"]},
        "constraints": {"genres": ["mystery", "thriller", "detective"]},
        "effectiveness_score": 0.83,
    },
    {
        "id": "tpl_confrontation_branch",
        "name": "Confrontation Branch",
        "category": "escalation",
        "template_text": "Confront {target} about {issue} and risk {potential_consequence}",
        "parameters": {"required": ["target", "issue", "potential_consequence"], "optional": ["approach", "backup_plan"]},
        "constraints": {},
        "effectiveness_score": 0.81,
    },
    {
        "id": "tpl_alliance_branch",
        "name": "Alliance Branch",
        "category": "de-escalation",
        "template_text": "Form an unlikely alliance with {potential_ally} to {common_goal}",
        "parameters": {"required": ["potential_ally", "common_goal"], "optional": ["terms", "risks"]},
        "constraints": {},
        "effectiveness_score": 0.77,
    },
)
