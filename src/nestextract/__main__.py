from .CLI import extract

if __name__ == "__main__":
    extract()
