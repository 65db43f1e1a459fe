"""Dictionary entry dataclasses and the response JSON schema.

WHY: The dictionary backend answers with a free-form JSON object produced
by an LLM. Typed dataclasses give the panel and the CLI a stable shape,
and a JSON schema rejects malformed answers before they reach the UI.

HOW: LEXICAL_ENTRY_SCHEMA describes the wire format (camelCase keys,
nullable sections). Each dataclass has a from_dict() factory that maps
the wire keys to snake_case fields and tolerates null/absent optional
sections. LexicalEntry.to_dict() produces the wire format again.

RULES:
- query is the only required field
- phonetics keys are regional variants ("uk", "us"); either may be null
- definitions, verbForms and contextAnalysis are null for phrases
- synonyms/antonyms default to empty lists
- All natural-language strings are opaque display text
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

_NULLABLE_STRING = {"type": ["string", "null"]}

_PHONETIC_SCHEMA: Dict[str, Any] = {
    "type": ["object", "null"],
    "properties": {
        "ipa": _NULLABLE_STRING,
        "audio": _NULLABLE_STRING,
    },
}

LEXICAL_ENTRY_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["query"],
    "properties": {
        "query": {"type": "string"},
        "phonetics": {
            "type": ["object", "null"],
            "additionalProperties": _PHONETIC_SCHEMA,
        },
        "definitions": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "required": ["meaning"],
                "properties": {
                    "partOfSpeech": _NULLABLE_STRING,
                    "level": _NULLABLE_STRING,
                    "meaning": {"type": "string"},
                    "synonyms": {"type": ["array", "null"], "items": {"type": "string"}},
                    "antonyms": {"type": ["array", "null"], "items": {"type": "string"}},
                    "example": {
                        "type": ["object", "null"],
                        "properties": {"en": _NULLABLE_STRING, "zh": _NULLABLE_STRING},
                    },
                },
            },
        },
        "verbForms": {
            "type": ["object", "null"],
            "properties": {
                "present": _NULLABLE_STRING,
                "past": _NULLABLE_STRING,
                "pastParticiple": _NULLABLE_STRING,
                "presentParticiple": _NULLABLE_STRING,
            },
        },
        "contextAnalysis": {
            "type": ["object", "null"],
            "properties": {
                "translation": _NULLABLE_STRING,
                "explanation": _NULLABLE_STRING,
            },
        },
    },
}


@dataclass
class Phonetic:
    """Pronunciation for one regional variant."""

    ipa: Optional[str] = None
    audio: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Phonetic:
        return cls(ipa=data.get("ipa"), audio=data.get("audio"))


@dataclass
class Example:
    en: Optional[str] = None
    zh: Optional[str] = None


@dataclass
class Definition:
    """One sense of the queried word.

    RULES:
    - level is a CEFR tag ("A1".."C2") or None
    - example is None when the backend gave no English example
    """

    part_of_speech: str
    meaning: str
    level: Optional[str] = None
    synonyms: List[str] = field(default_factory=list)
    antonyms: List[str] = field(default_factory=list)
    example: Optional[Example] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Definition:
        example_data = data.get("example") or {}
        example = None
        if example_data.get("en"):
            example = Example(en=example_data.get("en"), zh=example_data.get("zh"))
        return cls(
            part_of_speech=data.get("partOfSpeech") or "",
            meaning=data["meaning"],
            level=data.get("level"),
            synonyms=list(data.get("synonyms") or []),
            antonyms=list(data.get("antonyms") or []),
            example=example,
        )


@dataclass
class VerbForms:
    present: Optional[str] = None
    past: Optional[str] = None
    past_participle: Optional[str] = None
    present_participle: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VerbForms:
        return cls(
            present=data.get("present"),
            past=data.get("past"),
            past_participle=data.get("pastParticiple"),
            present_participle=data.get("presentParticiple"),
        )


@dataclass
class ContextAnalysis:
    translation: Optional[str] = None
    explanation: Optional[str] = None


@dataclass
class LexicalEntry:
    """A complete dictionary answer for a word or phrase in context.

    WHY: This is the one structure the panel renders and the CLI prints.

    HOW: Built from the decoded backend JSON via from_dict(); the client
    adds pronunciation audio locators afterwards.
    """

    query: str
    phonetics: Dict[str, Phonetic] = field(default_factory=dict)
    definitions: List[Definition] = field(default_factory=list)
    verb_forms: Optional[VerbForms] = None
    context_analysis: Optional[ContextAnalysis] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> LexicalEntry:
        phonetics = {
            region: Phonetic.from_dict(value)
            for region, value in (data.get("phonetics") or {}).items()
            if value is not None
        }
        verb_forms = None
        if data.get("verbForms"):
            verb_forms = VerbForms.from_dict(data["verbForms"])
        context_analysis = None
        if data.get("contextAnalysis"):
            ctx = data["contextAnalysis"]
            context_analysis = ContextAnalysis(
                translation=ctx.get("translation"),
                explanation=ctx.get("explanation"),
            )
        return cls(
            query=data["query"],
            phonetics=phonetics,
            definitions=[Definition.from_dict(d) for d in data.get("definitions") or []],
            verb_forms=verb_forms,
            context_analysis=context_analysis,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the backend's camelCase wire format."""
        return {
            "query": self.query,
            "phonetics": {
                region: {"ipa": p.ipa, "audio": p.audio}
                for region, p in self.phonetics.items()
            } or None,
            "definitions": [
                {
                    "partOfSpeech": d.part_of_speech,
                    "level": d.level,
                    "meaning": d.meaning,
                    "synonyms": list(d.synonyms),
                    "antonyms": list(d.antonyms),
                    "example": (
                        {"en": d.example.en, "zh": d.example.zh} if d.example else None
                    ),
                }
                for d in self.definitions
            ] or None,
            "verbForms": (
                {
                    "present": self.verb_forms.present,
                    "past": self.verb_forms.past,
                    "pastParticiple": self.verb_forms.past_participle,
                    "presentParticiple": self.verb_forms.present_participle,
                }
                if self.verb_forms
                else None
            ),
            "contextAnalysis": (
                {
                    "translation": self.context_analysis.translation,
                    "explanation": self.context_analysis.explanation,
                }
                if self.context_analysis
                else None
            ),
        }
