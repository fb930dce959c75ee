import pytest
import pytest_asyncio

from core.errors import CollaboratorFailure
from core.retrieval import PipelineState, RetrievalPipeline, Stage, normalize_keywords, verbatim_filter
from storage.models import Candidate, FileRecord
from storage.providers.sqlite import SQLiteTagIndexRepo
from tests.fakes.collaborators import FakeClassifier, FakeJudge


@pytest_asyncio.fixture
async def tag_index(db_path):
    repo = SQLiteTagIndexRepo(db_path)
    await repo.insert(
        FileRecord(
            path="notes/lecture1.pdf",
            name="lecture1.pdf",
            type="pdf",
            description="Math lecture 1",
            tags=["math", "lecture"],
        )
    )
    await repo.insert(
        FileRecord(path="history/essay.docx", name="essay.docx", type="docx", description="Essay", tags=["history"])
    )
    yield repo
    await repo.close()


@pytest.mark.asyncio
async def test_open_my_math_lecture_scenario(tag_index):
    classifier = FakeClassifier(keywords=["math"])
    judge = FakeJudge()

    result = await RetrievalPipeline(tag_index, classifier, judge).run("open my math lecture")

    assert result.keywords == ["math"]
    assert [c.path for c in result.candidates] == ["notes/lecture1.pdf"]
    assert result.selected == [Candidate(path="notes/lecture1.pdf", description="Math lecture 1")]
    assert classifier.keyword_calls[0][1] == ["math", "lecture", "history"]


@pytest.mark.asyncio
async def test_unindexed_file_yields_empty_selection(tag_index):
    classifier = FakeClassifier(keywords=["finance"])
    judge = FakeJudge()

    result = await RetrievalPipeline(tag_index, classifier, judge).run("delete budget.xlsx")

    assert result.keywords == []
    assert result.candidates == []
    assert result.selected == []
    assert judge.calls == []


@pytest.mark.asyncio
async def test_fabricated_paths_are_dropped(tag_index, caplog):
    classifier = FakeClassifier(keywords=["math", "history"])
    judge = FakeJudge(extra=["notes/lecture1.PDF", "/etc/passwd"])

    with caplog.at_level("WARNING", logger="core.retrieval"):
        result = await RetrievalPipeline(tag_index, classifier, judge).run("math and history")

    assert sorted(c.path for c in result.selected) == ["history/essay.docx", "notes/lecture1.pdf"]
    assert "Dropping fabricated path" in caplog.text


@pytest.mark.asyncio
async def test_collaborator_failure_fails_the_run(tag_index):
    pipeline = RetrievalPipeline(tag_index, FakeClassifier(fail_keywords=True), FakeJudge())
    with pytest.raises(CollaboratorFailure):
        await pipeline.run("open my math lecture")


@pytest.mark.asyncio
async def test_step_walks_each_stage(tag_index):
    pipeline = RetrievalPipeline(tag_index, FakeClassifier(keywords=["lecture"]), FakeJudge())
    state = PipelineState(stage=Stage.START, text="lecture")
    stages = []
    while state.stage is not Stage.DONE:
        state = await pipeline.step(state)
        stages.append(state.stage)
    assert stages == [Stage.KEYWORD_EXTRACTION, Stage.CANDIDATE_FETCH, Stage.CANDIDATE_FILTER, Stage.DONE]
    with pytest.raises(ValueError):
        await pipeline.step(state)


def test_normalize_keywords_flattens_and_filters():
    raw = [" math ", ["lecture", ["math"]], "invented", 3, ""]
    assert normalize_keywords(raw, ["math", "lecture"]) == ("math", "lecture")
    assert normalize_keywords("math", ["math"]) == ("math",)


def test_verbatim_filter_uses_candidate_description():
    candidates = (Candidate("a.pdf", "real"), Candidate("b.pdf", "other"))
    chosen = [Candidate("a.pdf", "rewritten"), Candidate("a.pdf", "dup"), Candidate("a.pdf ", "spaced")]
    assert verbatim_filter(chosen, candidates) == (Candidate("a.pdf", "real"),)
