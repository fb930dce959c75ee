"""Natural-language collaborators: file classifier, relevance judge, action planner, recommender.

The pipeline only depends on the Protocols below. The ``LLM*`` classes
implement them on top of a LangChain chat model using structured output
(and tool calling for the planner). Every failure of the underlying model,
including unparseable output, is raised as CollaboratorFailure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TypeVar

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.tools import tool
from pydantic import BaseModel, Field, ValidationError

from core.errors import CollaboratorFailure
from storage.models import Candidate

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

NO_MATCH_REPLY = "I couldn't find a matching file to perform that action."
NO_SCREEN_MATCH_REPLY = "I couldn't find any files on your current tab. Please try switching tabs."


# ============================================================================
# Collaborator outputs
# ============================================================================


class ActionKind(str, Enum):
    OPEN = "open"
    DELETE = "delete"


@dataclass
class FileMetadata:
    tags: list[str] = field(default_factory=list)
    description: str = ""


@dataclass(frozen=True)
class PlannedAction:
    action: ActionKind
    path: str


@dataclass
class ActionPlan:
    actions: list[PlannedAction] = field(default_factory=list)
    reply: str = ""


@dataclass
class Recommendation:
    output: str
    file_paths: list[str] = field(default_factory=list)


# ============================================================================
# Contracts
# ============================================================================


class Classifier(Protocol):
    async def classify_file(self, file_name: str, vocabulary: list[str]) -> FileMetadata:
        """Tags + description for one file name, reusing ``vocabulary`` where possible."""

    async def extract_keywords(self, text: str, vocabulary: list[str]) -> list[str]:
        """Subset of ``vocabulary`` relevant to ``text``."""

    async def summarize(self, text: str) -> str:
        """Very short (five word) summary of an agent reply."""


class RelevanceJudge(Protocol):
    async def select(self, text: str, candidates: list[Candidate]) -> list[Candidate]:
        """Candidates relevant to ``text``; paths must be copied verbatim."""


class ActionPlanner(Protocol):
    async def plan(self, text: str, candidates: list[Candidate]) -> ActionPlan:
        """Open/delete calls for ``text`` restricted to ``candidates``."""


class Recommender(Protocol):
    async def recommend(self, text: str, candidates: list[Candidate]) -> Recommendation:
        """Explain which ``candidates`` help with what is on screen."""


# ============================================================================
# Structured output schemas
# ============================================================================


class FileMetadataSchema(BaseModel):
    tags: list[str] = Field(default_factory=list, description="Short classification labels")
    description: str = Field("", description="One sentence describing the file")


class KeywordsSchema(BaseModel):
    word: list[str] = Field(default_factory=list, description="Tags chosen from the given list")


class CandidateSchema(BaseModel):
    path: str
    description: str = ""


class SelectedDocsSchema(BaseModel):
    docs: list[CandidateSchema] = Field(default_factory=list)


class RecommendationSchema(BaseModel):
    output: str = Field(..., description="The textual output, summary, or result message.")
    filePaths: list[str] = Field(default_factory=list, description="List of absolute file paths")


# ============================================================================
# Prompts
# ============================================================================

FILE_METADATA_PROMPT = """\
You index files for university students and researchers.
1. Infer from the file name what the file represents.
2. Reuse the known tags where they fit so labels stay consistent; add new ones only when needed.
3. Answer with "tags" and "description" only."""

KEYWORDS_PROMPT = """\
Work out what the user intends and pick the relevant keywords from these tags: {tags}.
Never make up tags of your own. Only answer with tags from that list."""

RELEVANCE_PROMPT = """\
Select the file paths relevant to the user's request.
A file is related if:
- its description or name mentions topics or terms from the request
- it belongs to the same course, subject or semester the request mentions
- it would naturally accompany the requested material (e.g. lecture notes for an assignment)

Each line below has a description and an absolute path in quotes.
Only use these files. Copy paths exactly; never create or modify a path.

The file paths are:
{files}"""

ACTION_PROMPT = """\
You are Seeq, a file operations agent with two tools:
1. OpenFilepath opens a file path.
2. RemoveFile deletes a file path.

You may only call tools with file paths listed here:
{files}

Rules:
- Only act on file paths that appear exactly (verbatim) in the list above.
- Never invent, modify, guess or generate file paths.
- If no listed path matches the request, reply only with: "{no_match}"
- "delete", "remove", "erase", "trash" mean RemoveFile; "open", "show", "view" mean OpenFilepath.
- You may call tools several times when several listed paths match.
- If the user asks for information rather than an action, do not call tools; answer in text.
After acting, give a short, polite confirmation of what was done."""

SUMMARY_PROMPT = "Generate exactly 5 words that summarize the following text. Be concise and descriptive."

RECOMMEND_PROMPT = """\
You recommend files based on OCR text captured from the user's current screen.
Work out what the user is working on and recommend files that help finish it.
If they are viewing an assignment, also suggest related lecture notes, reference PDFs or coursework;
if they are viewing lecture notes, suggest a matching assignment.
If nothing is clearly relevant, answer: "{no_match}"
Give a 2 to 3 sentence explanation of what you recommended and why.

Only use these file paths (each with a description). Do not invent new ones:
{files}"""


def format_candidates(candidates: list[Candidate]) -> str:
    return "\n".join(f'Description: {c.description}, Filepath: "{c.path}"' for c in candidates)


def message_text(content: Any) -> str:
    """Flatten a chat message ``content`` (str or content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content)


# ============================================================================
# Planner tools (declared for tool calling; the planner never executes them)
# ============================================================================


@tool("OpenFilepath")
def open_filepath(target_file: str) -> str:
    """Using the filepath, open the file on the user's computer."""
    return target_file


@tool("RemoveFile")
def remove_file(target_file: str) -> str:
    """Using the filepath, remove the file from the user's computer."""
    return target_file


_TOOL_ACTIONS = {
    "OpenFilepath": ActionKind.OPEN,
    "RemoveFile": ActionKind.DELETE,
}


# ============================================================================
# LangChain-backed implementations
# ============================================================================


class _LLMCollaborator:
    name = "llm"

    def __init__(self, model: Any):
        self.model = model

    async def _structured(self, schema: type[SchemaT], system: str, user: str) -> SchemaT:
        messages = [SystemMessage(content=system), HumanMessage(content=user)]
        try:
            result = await self.model.with_structured_output(schema).ainvoke(messages)
        except Exception as e:
            raise CollaboratorFailure(self.name, str(e)) from e
        if isinstance(result, schema):
            return result
        if isinstance(result, dict):
            try:
                return schema.model_validate(result)
            except ValidationError as e:
                raise CollaboratorFailure(self.name, f"malformed response: {e}") from e
        raise CollaboratorFailure(self.name, f"unexpected response type {type(result).__name__}")


class LLMClassifier(_LLMCollaborator):
    """File metadata, keyword extraction and five-word summaries.

    ``summary_model`` lets summaries run on a differently tuned model.
    """

    name = "classifier"

    def __init__(self, model: Any, summary_model: Any | None = None):
        super().__init__(model)
        self.summary_model = summary_model or model

    async def classify_file(self, file_name: str, vocabulary: list[str]) -> FileMetadata:
        user = f'Filename: "{file_name}"\nExisting tags across all files: {", ".join(vocabulary)}\n\nGenerate metadata now.'
        result = await self._structured(FileMetadataSchema, FILE_METADATA_PROMPT, user)
        return FileMetadata(tags=list(result.tags), description=result.description)

    async def extract_keywords(self, text: str, vocabulary: list[str]) -> list[str]:
        system = KEYWORDS_PROMPT.format(tags=", ".join(vocabulary))
        result = await self._structured(KeywordsSchema, system, text)
        return list(result.word)

    async def summarize(self, text: str) -> str:
        messages = [SystemMessage(content=SUMMARY_PROMPT), HumanMessage(content=text)]
        try:
            response = await self.summary_model.ainvoke(messages)
        except Exception as e:
            raise CollaboratorFailure("summarizer", str(e)) from e
        summary = message_text(getattr(response, "content", response)).strip()
        if not summary:
            raise CollaboratorFailure("summarizer", "empty summary")
        return summary


class LLMRelevanceJudge(_LLMCollaborator):
    name = "relevance_judge"

    async def select(self, text: str, candidates: list[Candidate]) -> list[Candidate]:
        system = RELEVANCE_PROMPT.format(files=format_candidates(candidates))
        result = await self._structured(SelectedDocsSchema, system, text)
        return [Candidate(path=doc.path, description=doc.description) for doc in result.docs]


class LLMActionPlanner(_LLMCollaborator):
    """Decides open/delete calls through tool calling; tools are only declared, never run here."""

    name = "action_planner"

    async def plan(self, text: str, candidates: list[Candidate]) -> ActionPlan:
        system = ACTION_PROMPT.format(files=format_candidates(candidates), no_match=NO_MATCH_REPLY)
        messages = [SystemMessage(content=system), HumanMessage(content=text)]
        try:
            response = await self.model.bind_tools([open_filepath, remove_file]).ainvoke(messages)
        except Exception as e:
            raise CollaboratorFailure(self.name, str(e)) from e

        actions: list[PlannedAction] = []
        for call in getattr(response, "tool_calls", None) or []:
            kind = _TOOL_ACTIONS.get(call.get("name"))
            target = (call.get("args") or {}).get("target_file")
            if kind is None or not isinstance(target, str):
                logger.warning("Ignoring unusable tool call from planner: %s", call)
                continue
            actions.append(PlannedAction(action=kind, path=target))
        return ActionPlan(actions=actions, reply=message_text(response.content).strip())


class LLMRecommender(_LLMCollaborator):
    name = "recommender"

    async def recommend(self, text: str, candidates: list[Candidate]) -> Recommendation:
        system = RECOMMEND_PROMPT.format(files=format_candidates(candidates), no_match=NO_SCREEN_MATCH_REPLY)
        result = await self._structured(RecommendationSchema, system, text)
        return Recommendation(output=result.output, file_paths=list(result.filePaths))
