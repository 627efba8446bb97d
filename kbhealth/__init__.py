"""
Knowledge Base Health

Synchronizes articles from external knowledge-base sites, tracks per-source
sync health, and audits articles against quality rules to produce issue
reports and a content health score.
"""
