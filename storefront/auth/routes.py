from fastapi import APIRouter, Depends, status
from storefront.api.dependencies import get_context
from storefront.auth import services
from storefront.auth.constants import logger
from storefront.auth.models import SignInIn, SignUpIn
from storefront.common.utils import success
from storefront.context import StorefrontContext

auth_router = APIRouter()


@auth_router.post("/signin")
async def signin_user(payload: SignInIn, ctx: StorefrontContext = Depends(get_context)):
    session = await services.sign_in(ctx.api, ctx.auth, payload)
    await ctx.sync_cart()
    return success({"user": session.public()})


@auth_router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup_user(payload: SignUpIn, ctx: StorefrontContext = Depends(get_context)):
    session = await services.sign_up(ctx.api, ctx.auth, payload)
    await ctx.sync_cart()
    return success({
        "message": "Account created successfully.",
        "user": session.public() if session else None,
    })


@auth_router.post("/signout")
async def signout_user(ctx: StorefrontContext = Depends(get_context)):
    user_id = ctx.user.id if ctx.user else None
    await services.sign_out(ctx.api, ctx.auth)
    logger.info("signout.success", extra={"user_id": user_id})
    return success({"message": "Signed out successfully."})


@auth_router.get("/me")
async def current_user(ctx: StorefrontContext = Depends(get_context)):
    return success({
        "authenticated": ctx.auth.is_authenticated(),
        "user": ctx.user.public() if ctx.user else None,
    })
