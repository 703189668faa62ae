"""Identity and epic resolution shared by the migration pipelines."""
