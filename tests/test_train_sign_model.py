import numpy as np

from landmark_utils import landmarks_to_array
from model_store import ModelStore
from sign_language_training.train_sign_model import augment_sample, load_training_samples, main

from conftest import make_samples


def _store_with_samples(tmp_path, per_sign=3):
    store = ModelStore(str(tmp_path / "models"))
    model = store.create_model("Hands", "custom", ["OPEN", "FIST"])
    store.add_samples(model["id"], make_samples(per_sign=per_sign))
    return store, model["id"]


def test_augment_sample_adds_noisy_copies():
    sample = make_samples(per_sign=1)[0]
    out = augment_sample(sample, n_augment=3, rng=np.random.default_rng(0))
    assert len(out) == 4
    assert out[0] is sample
    assert all(o["sign"] == sample["sign"] for o in out)
    original = landmarks_to_array(sample["landmarks"])
    assert not np.allclose(landmarks_to_array(out[1]["landmarks"]), original)
    assert np.allclose(landmarks_to_array(out[1]["landmarks"]), original, atol=0.1)


def test_load_training_samples_counts_recorded_samples(tmp_path):
    store, model_id = _store_with_samples(tmp_path)
    samples, counts = load_training_samples(store, model_id, augment_factor=2, seed=1)
    assert counts == {"OPEN": 3, "FIST": 3}
    assert len(samples) == 18


def test_main_trains_and_saves(tmp_path):
    store, model_id = _store_with_samples(tmp_path)
    code = main([
        "--model-id", model_id,
        "--models-folder", store.models_folder,
        "--iterations", "3",
        "--augment-factor", "1",
    ])
    assert code == 0
    artifact = store.load_artifact(model_id)
    assert artifact is not None
    assert artifact.labels == ("FIST", "OPEN")
    assert artifact.iterations <= 3


def test_main_refuses_short_signs(tmp_path):
    store, model_id = _store_with_samples(tmp_path, per_sign=2)
    code = main(["--model-id", model_id, "--models-folder", store.models_folder, "--iterations", "2"])
    assert code == 1
    assert store.load_artifact(model_id) is None
