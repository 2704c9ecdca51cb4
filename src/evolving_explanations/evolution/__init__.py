"""Evolutionary explanation refinement: sampling, generation, judgement, consensus."""
