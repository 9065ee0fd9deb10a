"""
Scoring subsystem.

Components:
- skill_config.py: validated per-skill configuration and its loader
- points.py: points formula, fairness analysis, ScoringEngine
"""
