from .substrate import Substrate
from .activation import Activation, Relu, LeakyRelu, Identity, Sigmoid, Tanh
from .loss import Loss, MSE, MAE
from .layer import Layer
from .manifold import Manifold, GradientRetention, plateau
