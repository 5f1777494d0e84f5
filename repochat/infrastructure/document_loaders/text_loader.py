from pathlib import Path


class SourceFileLoader:

    CODE_EXTENSIONS = {
        ".py", ".js", ".ts", ".java", ".cpp", ".c", ".go", ".rs",
        ".jsx", ".tsx", ".html", ".css", ".php", ".swift", ".cs",
    }
    DOC_EXTENSIONS = {".md", ".txt", ".rst", ".json", ".yaml", ".yml"}

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.CODE_EXTENSIONS | self.DOC_EXTENSIONS

    def is_code(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.CODE_EXTENSIONS

    def content_type(self, file_path: Path) -> str:
        return file_path.suffix.lower().lstrip(".")

    def load(self, file_path: Path) -> str:
        return file_path.read_text(encoding="utf-8")
