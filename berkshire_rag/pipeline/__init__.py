# Pipeline package — Ingestor, Retriever and Answer Composer
