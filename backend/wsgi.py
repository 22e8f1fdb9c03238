from scanstock import create_app

app = create_app()
