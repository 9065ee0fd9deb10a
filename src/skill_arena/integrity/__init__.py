"""
Integrity subsystem.

Components:
- models.py: Submission, PlagiarismReport, risk bands
- features.py: feature vectors, cosine similarity, matched lines
- corpus.py: SQLite-backed submission corpus
- plagiarism.py: IntegrityEngine
"""
