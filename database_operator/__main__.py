from database_operator.main import run

if __name__ == "__main__":
    run()
