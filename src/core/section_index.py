"""
Weave 章节索引：内存只读查找表

启动时扫描工作区，解析到内存：
  - 根文档（默认 main.md）→ 无 front matter id 时记为 "main"
  - sections/**/*.md       → YAML front matter 提供 id / title / peek

渲染引擎只通过 get_section(id) 读取，渲染期间不做任何磁盘 I/O。
reload() 整体替换映射表，并发渲染不会看到半成品索引。
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

ROOT_SECTION_ID = "main"


@dataclass(frozen=True)
class Section:
    """一个可被 node: 引用的内容单元"""
    id: str
    title: str | None = None
    raw_body: str = ""
    full_source: str = ""
    peek: str | None = None
    path: Path | None = None

    @property
    def display_title(self) -> str:
        return self.title or self.id


def split_front_matter(text: str) -> tuple[dict | None, str]:
    """
    拆分 YAML front matter 与正文。

    返回 (front_matter, body)；没有 front matter 或 YAML 无法解析时
    front_matter 为 None，body 为原文。
    """
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return None, text

    end_index = None
    for idx in range(1, len(lines)):
        if lines[idx].strip() == "---":
            end_index = idx
            break
    if end_index is None:
        return None, text

    try:
        data = yaml.safe_load("\n".join(lines[1:end_index])) or {}
    except yaml.YAMLError as e:
        log.warning(f"front matter 解析失败: {e}")
        return None, text
    if not isinstance(data, dict):
        return None, text

    body = "\n".join(lines[end_index + 1:]).strip()
    return data, body


def _optional_str(value):
    if value is None:
        return None
    return str(value)


class SectionIndex:
    """
    工作区章节索引。
    content_dir 为 None 时为纯内存索引（见 from_sections）。
    """

    def __init__(self, content_dir: str | Path | None = None,
                 root_file: str = "main.md",
                 sections_glob: str = "sections/**/*.md"):
        self.content_dir = Path(content_dir) if content_dir is not None else None
        self.root_file = root_file
        self.sections_glob = sections_glob

        # 内存数据
        self.sections: dict[str, Section] = {}       # {section_id: Section}
        self.duplicates: dict[str, list[Path]] = {}  # {section_id: [重复文件路径]}

        if self.content_dir is not None:
            self.reload()

    @classmethod
    def from_sections(cls, sections):
        """由现成的 Section 列表构建内存索引（先出现者优先）"""
        index = cls(None)
        table = {}
        for section in sections:
            if section.id in table:
                index.duplicates.setdefault(section.id, []).append(section.path)
                continue
            table[section.id] = section
        index.sections = table
        return index

    # ================================================================
    # 公开接口
    # ================================================================

    def get_section(self, section_id: str) -> Section | None:
        """按 id 查询章节（渲染引擎的内容查找接口）"""
        return self.sections.get(section_id)

    def __contains__(self, section_id):
        return section_id in self.sections

    def __len__(self):
        return len(self.sections)

    def section_ids(self) -> list[str]:
        return list(self.sections)

    def all_sections(self) -> list[Section]:
        return list(self.sections.values())

    @property
    def root_section(self) -> Section | None:
        """根文档对应的章节"""
        for section in self.sections.values():
            if section.path is not None and section.path.name == self.root_file:
                return section
        return self.sections.get(ROOT_SECTION_ID)

    def reload(self) -> int:
        """重新扫描工作区，整体替换索引，返回章节数"""
        if self.content_dir is None:
            return len(self.sections)

        table: dict[str, Section] = {}
        duplicates: dict[str, list[Path]] = {}

        if not self.content_dir.exists():
            log.warning(f"工作区目录不存在: {self.content_dir}")
        else:
            root_path = self.content_dir / self.root_file
            if root_path.is_file():
                section = self._load_file(root_path, default_id=ROOT_SECTION_ID)
                if section:
                    table[section.id] = section

            for path in sorted(self.content_dir.glob(self.sections_glob)):
                if not path.is_file() or path == root_path:
                    continue
                section = self._load_file(path)
                if section is None:
                    continue
                if section.id in table:
                    duplicates.setdefault(section.id, []).append(path)
                    log.warning(f"章节 id 重复: {section.id} ({path})，保留先加载的文件")
                    continue
                table[section.id] = section

        self.sections = table
        self.duplicates = duplicates
        log.info(f"SectionIndex 加载完成: {len(table)} 个章节, {len(duplicates)} 个重复 id")
        return len(table)

    # ================================================================
    # 文件解析
    # ================================================================

    def _load_file(self, path: Path, default_id: str | None = None) -> Section | None:
        """解析单个 Markdown 文件为 Section；缺少 id 时跳过"""
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log.error(f"读取章节文件失败 {path}: {e}")
            return None

        front, body = split_front_matter(text)
        front = front or {}

        section_id = front.get("id", default_id)
        if not isinstance(section_id, str) or not section_id.strip():
            log.warning(f"章节缺少 front matter id，已跳过: {path}")
            return None

        return Section(
            id=section_id.strip(),
            title=_optional_str(front.get("title")),
            raw_body=body,
            full_source=text,
            peek=_optional_str(front.get("peek")),
            path=path,
        )
