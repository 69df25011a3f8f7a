"""InventaLab research-professor tutoring backend."""
