"""Detail view assembly: threaded comments and related prompts."""

from collections import defaultdict
from typing import Dict, List, NamedTuple, Optional, Sequence, Set

from schemas import Comment, Prompt


class CommentNode(NamedTuple):
    comment: Comment
    children: List["CommentNode"]


class PromptDetail(NamedTuple):
    prompt: Prompt
    thread: List[CommentNode]
    related: List[Prompt]
    reactions: Dict[str, int]


def build_comment_tree(prompt: Prompt) -> List[CommentNode]:
    """
    Rebuild the reply forest from the flat comment list.

    Sibling order follows the list itself (newest first). A comment whose
    parent does not exist becomes a root. A comment already placed in the
    tree is never visited again, so a cycle in parent ids ends the descent and
    the members that were not reached from a real root are shown as roots.
    """
    comments = prompt.comments
    known = {c.id for c in comments}
    children: Dict[Optional[str], List[Comment]] = defaultdict(list)
    for c in comments:
        parent = c.parent_id if c.parent_id in known and c.parent_id != c.id else None
        children[parent].append(c)

    visited: Set[str] = set()

    def grow(comment: Comment) -> CommentNode:
        visited.add(comment.id)
        node = CommentNode(comment, [])
        stack = [(node, children.get(comment.id, []))]
        while stack:
            parent_node, kids = stack.pop()
            for kid in kids:
                if kid.id in visited:
                    continue
                visited.add(kid.id)
                kid_node = CommentNode(kid, [])
                parent_node.children.append(kid_node)
                stack.append((kid_node, children.get(kid.id, [])))
        return node

    roots = [grow(c) for c in children.get(None, []) if c.id not in visited]
    # anything left sits on a parent cycle with no way in from a root
    for c in comments:
        if c.id not in visited:
            roots.append(grow(c))
    return roots


def related_prompts(prompt: Prompt, all_prompts: Sequence[Prompt], limit: int = 3) -> List[Prompt]:
    tags = set(prompt.tags)
    scored = []
    for other in all_prompts:
        if other.id == prompt.id:
            continue
        overlap = len(tags.intersection(other.tags))
        if overlap:
            scored.append((overlap, other))
    scored.sort(key=lambda pair: (pair[0], pair[1].created_at), reverse=True)
    return [other for _, other in scored[:limit]]


def prompt_detail(prompt: Prompt, all_prompts: Sequence[Prompt], related_limit: int = 3) -> PromptDetail:
    return PromptDetail(
        prompt=prompt,
        thread=build_comment_tree(prompt),
        related=related_prompts(prompt, all_prompts, related_limit),
        reactions={kind: state.count for kind, state in prompt.reactions.items()},
    )
