from sales_ingest import create_app

app = create_app()
