from depth_debias.buffers import ScratchBuffer


def test_scratch_buffer_reallocates_on_shape_change():
    buf = ScratchBuffer()
    assert buf.shape is None
    a = buf.ensure((3, 2))
    assert buf.ensure((3, 2)) is a
    b = buf.ensure((4, 2))
    assert b is not a
    assert buf.shape == (4, 2)
    assert buf.matches((4, 2))
    assert not buf.matches((4, 2), dtype="float32")
