from designstudio import create_app

# tables and the default design config are created by the factory
app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
