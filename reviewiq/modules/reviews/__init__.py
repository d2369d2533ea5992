# reviewiq/modules/reviews/__init__.py

"""
Review intake and enrichment module

Key Components:
- Fact store: document-shaped persistence over SQLAlchemy
- Classifier gateway: time-boxed sentiment/category classification
- Escalation policy: rating + sentiment escalation rules
- Review pipeline: validate, persist, enrich, finalize, dispatch side effects
- Side effects: branch broadcast, audit trail, manager alerts
- External sync: Google Places review import with de-duplication
"""
