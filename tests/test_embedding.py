import pytest

from ragobs.adapters.vector_index import InMemoryVectorIndex
from ragobs.embedding import CharacterCodeEmbeddingGenerator, cosine_similarity
from ragobs.ports import VectorRecord


def test_cosine_similarity_basic_cases():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 2.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)
    assert cosine_similarity([1.0, 0.0, 0.0], [0.8, 0.6, 0.0]) == pytest.approx(0.8)


def test_cosine_similarity_degenerate_inputs_score_zero():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert isinstance(cosine_similarity([1.0, 2.0], [2.0, 1.0]), float)


def test_character_code_generator_is_deterministic():
    generator = CharacterCodeEmbeddingGenerator(4)

    first = generator.generate("ab")

    assert first == generator.generate("ab")
    assert len(first) == 4
    assert first[0] == pytest.approx(ord("a") / 255 * 2 - 1)
    assert first[2] == first[0]
    assert generator.generate("") == [-1.0] * 4


@pytest.mark.asyncio
async def test_index_search_matches_pairwise_cosine():
    index = InMemoryVectorIndex()
    records = [
        VectorRecord(id="same", values=[1.0, 0.0, 0.0], metadata={"type": "a"}),
        VectorRecord(id="angled", values=[0.8, 0.6, 0.0], metadata={"type": "a"}),
        VectorRecord(id="opposite", values=[-1.0, 0.0, 0.0], metadata={"type": "b"}),
        VectorRecord(id="zero", values=[0.0, 0.0, 0.0], metadata={"type": "a"}),
        VectorRecord(id="short", values=[1.0, 0.0], metadata={"type": "a"}),
    ]
    await index.upsert(records)
    query = [1.0, 0.0, 0.0]

    results = await index.search(query, top_k=10)

    assert [result.id for result in results][:2] == ["same", "angled"]
    assert results[-1].id == "opposite"
    by_id = {result.id: result.score for result in results}
    for record in records:
        assert by_id[record.id] == pytest.approx(cosine_similarity(query, record.values))
    assert by_id["zero"] == 0.0
    assert by_id["short"] == 0.0


@pytest.mark.asyncio
async def test_index_search_filters_and_truncates():
    index = InMemoryVectorIndex()
    await index.upsert(
        [
            VectorRecord(id="a1", values=[1.0, 0.0], metadata={"type": "a"}),
            VectorRecord(id="a2", values=[0.6, 0.8], metadata={"type": "a"}),
            VectorRecord(id="b1", values=[1.0, 0.0], metadata={"type": "b"}),
        ]
    )

    filtered = await index.search([1.0, 0.0], top_k=10, metadata_filter={"type": "a"})
    assert [result.id for result in filtered] == ["a1", "a2"]

    top_one = await index.search([1.0, 0.0], top_k=1, metadata_filter={"type": "a"})
    assert [result.id for result in top_one] == ["a1"]

    assert await index.search([1.0, 0.0], top_k=5, metadata_filter={"type": "missing"}) == []
