from conftest import make_comment, make_prompt
from comment_threads import build_comment_tree, prompt_detail, related_prompts


def flatten(nodes, depth=0):
    out = []
    for node in nodes:
        out.append((node.comment.id, depth))
        out.extend(flatten(node.children, depth + 1))
    return out


def test_orphan_becomes_root():
    prompt = make_prompt("p", comments=[
        make_comment("1"),
        make_comment("2", parent_id="1"),
        make_comment("3", parent_id="99"),
    ])

    tree = build_comment_tree(prompt)

    assert [n.comment.id for n in tree] == ["1", "3"]
    assert [c.comment.id for c in tree[0].children] == ["2"]
    assert tree[1].children == []


def test_sibling_order_follows_comment_list():
    prompt = make_prompt("p", comments=[
        make_comment("r2", minutes=5),
        make_comment("c-new", parent_id="r1", minutes=4),
        make_comment("c-old", parent_id="r1", minutes=2),
        make_comment("r1", minutes=1),
    ])

    tree = build_comment_tree(prompt)

    assert [n.comment.id for n in tree] == ["r2", "r1"]
    assert [c.comment.id for c in tree[1].children] == ["c-new", "c-old"]


def test_deep_threads():
    comments = [make_comment("0")]
    for i in range(1, 200):
        comments.append(make_comment(str(i), parent_id=str(i - 1)))
    tree = build_comment_tree(make_prompt("p", comments=comments))

    flat = flatten(tree)
    assert len(flat) == 200
    assert flat[-1] == ("199", 199)


def test_parent_cycle_does_not_loop():
    prompt = make_prompt("p", comments=[
        make_comment("a", parent_id="b"),
        make_comment("b", parent_id="a"),
        make_comment("self", parent_id="self"),
        make_comment("root"),
    ])

    tree = build_comment_tree(prompt)
    flat = flatten(tree)

    assert sorted(cid for cid, _ in flat) == ["a", "b", "root", "self"]
    assert len(flat) == 4
    root_ids = [n.comment.id for n in tree]
    assert "root" in root_ids and "self" in root_ids


def test_related_prompts_ranked_by_overlap_then_recency():
    target = make_prompt("t", tags=["ops", "ai", "writing"])
    others = [
        target,
        make_prompt("one-old", tags=["ops"], minutes=1),
        make_prompt("two", tags=["ops", "ai"], minutes=2),
        make_prompt("one-new", tags=["writing"], minutes=9),
        make_prompt("none", tags=["testing"], minutes=10),
    ]

    assert [p.id for p in related_prompts(target, others, limit=5)] == ["two", "one-new", "one-old"]
    assert [p.id for p in related_prompts(target, others, limit=1)] == ["two"]


def test_prompt_detail():
    target = make_prompt("t", tags=["ops"], likes=["u1", "u2"], comments=[make_comment("1")])
    detail = prompt_detail(target, [target, make_prompt("x", tags=["ops"])])

    assert detail.prompt is target
    assert detail.reactions == {"like": 2}
    assert [n.comment.id for n in detail.thread] == ["1"]
    assert [p.id for p in detail.related] == ["x"]
