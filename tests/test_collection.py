from __future__ import annotations

import unittest
from pathlib import Path

from e6dl.collection import (
    CATEGORY_POOLS,
    CATEGORY_ROOT,
    GrabbedPost,
    PostCollection,
    clean_path_component,
    grabbed_from_pool,
    grabbed_from_post,
    order_pool_posts,
)
from e6dl.post import Post


def _post(post_id: int, *, md5: str | None = "abc", ext: str | None = "png", url: str | None = "auto") -> Post:
    return Post(
        id=post_id,
        uploader_id=1,
        rating="s",
        file_url=f"https://static1.e621.net/data/{post_id}.webm" if url == "auto" else url,
        md5=md5,
        file_ext=ext,
        file_size=100 * post_id,
    )


class TestNaming(unittest.TestCase):
    def test_md5_and_id_conventions(self) -> None:
        self.assertEqual(grabbed_from_post(_post(3), "md5").name, "abc.png")
        self.assertEqual(grabbed_from_post(_post(3), "id").name, "3.png")

    def test_md5_falls_back_to_id_and_extension_to_url(self) -> None:
        grabbed = grabbed_from_post(_post(4, md5=None, ext=None), "md5")
        self.assertEqual(grabbed, GrabbedPost(4, "https://static1.e621.net/data/4.webm", "4.webm", 400))

    def test_post_without_url_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            grabbed_from_post(_post(5, url=None))

    def test_pool_pages_are_numbered_in_order(self) -> None:
        names = [g.name for g in grabbed_from_pool([_post(9), _post(2)], "My Comic")]
        self.assertEqual(names, ["My Comic Page_00001.png", "My Comic Page_00002.png"])


class TestOrderPoolPosts(unittest.TestCase):
    def test_follows_pool_order_and_skips_missing(self) -> None:
        searched = [_post(3), _post(1), _post(7)]
        ordered = order_pool_posts([1, 2, 3, 7], searched)
        self.assertEqual([p.id for p in ordered], [1, 3, 7])

    def test_unlisted_posts_go_last(self) -> None:
        ordered = order_pool_posts([5], [_post(8), _post(5)])
        self.assertEqual([p.id for p in ordered], [5, 8])


class TestPaths(unittest.TestCase):
    def test_clean_path_component(self) -> None:
        self.assertEqual(clean_path_component('a?b:c*d<e>f"g|h'), "a_b_c_d_e_f_g_h")
        self.assertEqual(clean_path_component("fox/wolf"), "fox_wolf")
        self.assertEqual(clean_path_component("trailing. "), "trailing")
        self.assertEqual(clean_path_component("  "), "_")

    def test_collection_directory(self) -> None:
        root = Path("downloads")
        pool = PostCollection("Some: Comic", CATEGORY_POOLS)
        single = PostCollection("Single Posts", CATEGORY_ROOT)
        self.assertEqual(pool.directory(root), root / "Pools" / "Some_ Comic")
        self.assertEqual(single.directory(root), root / "Single Posts")
        self.assertEqual(pool.label, "Pools/Some: Comic")
        self.assertEqual(single.label, "Single Posts")

    def test_total_bytes(self) -> None:
        collection = PostCollection("x", CATEGORY_ROOT, grabbed_from_pool([_post(1), _post(2)], "x"))
        self.assertEqual(len(collection), 2)
        self.assertEqual(collection.total_bytes, 300)


if __name__ == "__main__":
    unittest.main()
