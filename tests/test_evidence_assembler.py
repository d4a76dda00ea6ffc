# FILE: tests/test_evidence_assembler.py
"""
Tests for the evidence block and its citation list.
"""
from architect.evidence_assembler import assemble_evidence
from architect.evidence_store import HistoricalArtifact
from architect.fusion import FusedCandidate


def chunk(cid, source, score=0.5, text="Opening hours are 8am to 6pm."):
    return FusedCandidate(id=cid, text=text, source_name=source, origins=("dense",), score=score, rerank_score=score)


class TestAssembleEvidence:

    def test_citations_follow_text_order(self):
        reranked = [
            chunk("11111111-aaaa-bbbb-cccc-000000000001", "best_practices.md", 0.685),
            chunk("22222222-aaaa-bbbb-cccc-000000000002", "faq.pdf", 0.585),
        ]
        historical = [HistoricalArtifact(id="33333333-aaaa-bbbb-cccc-000000000003",
                                         synthesized_prompt="x" * 1000, total_score=0.91)]

        ev = assemble_evidence(reranked, historical, snippet_chars=400)

        assert [c["uri"] for c in ev.citation_dicts()] == [
            "kb://chunk/11111111-aaaa-bbbb-cccc-000000000001",
            "kb://chunk/22222222-aaaa-bbbb-cccc-000000000002",
            "prompt://record/33333333-aaaa-bbbb-cccc-000000000003",
        ]
        first = ev.citation_dicts()[0]
        assert first == {
            "uri": "kb://chunk/11111111-aaaa-bbbb-cccc-000000000001",
            "version": "1.0",
            "hash": "11111111",
            "source": "best_practices.md",
        }
        assert ev.citation_dicts()[2]["source"] == "historical_prompt"
        assert ev.kb_chunks_used == 2
        assert ev.historical_used == 1

        assert ev.text.index("best_practices.md") < ev.text.index("faq.pdf") < ev.text.index("[Example 1]")
        assert "(score: 0.69)" in ev.text
        assert "Score: 0.91" in ev.text
        assert "x" * 400 + "..." in ev.text
        assert "x" * 401 not in ev.text

    def test_no_evidence(self):
        ev = assemble_evidence([], [])
        assert ev.citations == []
        assert ev.kb_chunks_used == 0
        assert ev.historical_used == 0
        assert "RETRIEVED EVIDENCE" in ev.text
        assert "KNOWLEDGE BASE" not in ev.text

    def test_duplicates_are_kept(self):
        same = chunk("44444444-0000-0000-0000-000000000000", "faq.pdf")
        ev = assemble_evidence([same, same], [])
        assert len(ev.citations) == 2

    def test_missing_source_name(self):
        ev = assemble_evidence([chunk("55555555-0000", None)], [])
        assert "[1] KB (score: 0.50)" in ev.text
        assert ev.citation_dicts()[0]["source"] is None
